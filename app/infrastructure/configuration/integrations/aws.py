"""AWS integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class AwsSettings(IntegrationSettings):
    """AWS configuration settings for the DynamoDB store.

    Environment Variables:
        AWS_REGION: AWS region for services (default: ca-central-1)
        AWS_ENDPOINT_URL: Optional endpoint override (local DynamoDB)
        AWS_MAX_RETRIES: Retries for throttled calls (default: 3)
    """

    AWS_REGION: str = Field(default="ca-central-1", alias="AWS_REGION")
    ENDPOINT_URL: str | None = Field(default=None, alias="AWS_ENDPOINT_URL")
    MAX_RETRIES: int = Field(default=3, alias="AWS_MAX_RETRIES")

    THROTTLING_ERRS: list[str] = [
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "ProvisionedThroughputExceededException",
    ]
