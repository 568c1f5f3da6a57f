"""Infrastructure modules for the event reminder service.

- configuration: Settings management
- logging: structlog setup and run context
- operations: Operation results and error classification
- notifications: Reminder scheduling, delivery adapters and the orchestrator
- security: Credential encryption and trigger authentication
- services: Dependency injection providers
"""
