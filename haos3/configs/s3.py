"""S3 config."""

from typing import Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from haos3.endpoint import Endpoint


class S3Config(BaseSettings):
    """S3 configuration.

    This config is used to configure the S3 client. It is frozen once built.

    Attributes:
        endpoint_url (str): URL of the S3 service, e.g. ``https://s3.amazonaws.com`` or
            ``http://localhost:9000`` for MinIO. Can be set via ENDPOINT_URL environment variable.
        aws_access_key_id (str | None): The access key ID for authenticating API requests.
            Can be set via AWS_ACCESS_KEY_ID environment variable. Requests are sent
            unsigned when no credentials are configured.
        aws_secret_access_key (str | None): The secret access key for authenticating API requests.
            Can be set via AWS_SECRET_ACCESS_KEY environment variable.
        aws_session_token (str | None): The session token for temporary credentials.
            Can be set via AWS_SESSION_TOKEN environment variable. Defaults to None.
        aws_region (str | None): Signing region. Can be set via AWS_REGION environment variable.
            Defaults to None, which derives the region from the endpoint host.
        verify (bool | str): Controls SSL certificate verification.
            If True, verifies the server's certificate (default).
            If False, SSL verification is disabled (not recommended for production).
            If a string, it's the path to a CA bundle to use for verification.
        timeout (float | None): Request timeout in seconds. Defaults to None, the transport default.
        multipart_concurrency (int): Parts uploaded at the same time by ``put_object``.
            Defaults to 1, sequential uploads.
        app_name (str | None): Application name appended to the User-Agent.
        app_version (str | None): Application version appended to the User-Agent.

    """

    model_config = SettingsConfigDict(frozen=True)

    endpoint_url: str = Field(description="URL of the S3 service.")
    aws_access_key_id: str | None = Field(default=None, description="The access key ID for authenticating requests.")
    aws_secret_access_key: str | None = Field(
        default=None, description="The secret access key for authenticating requests."
    )
    aws_session_token: str | None = Field(default=None, description="The session token for temporary credentials.")
    aws_region: str | None = Field(default=None, description="Signing region, derived from the endpoint if unset.")
    verify: bool | str = Field(
        default=True,
        description="Controls SSL certificate verification. True to verify, False to disable, or path to CA bundle.",
    )
    timeout: float | None = Field(default=None, gt=0, description="Request timeout in seconds.")
    multipart_concurrency: int = Field(default=1, ge=1, description="Parts uploaded at the same time.")
    app_name: str | None = Field(default=None, description="Application name appended to the User-Agent.")
    app_version: str | None = Field(default=None, description="Application version appended to the User-Agent.")

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, value: str) -> str:
        Endpoint.parse(value)
        return value

    @model_validator(mode="after")
    def validate_credentials(self) -> Self:
        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            msg = "Both aws_access_key_id and aws_secret_access_key must be set, or neither"
            raise ValueError(msg)
        if self.aws_session_token and not self.aws_access_key_id:
            msg = "aws_session_token requires aws_access_key_id and aws_secret_access_key"
            raise ValueError(msg)
        return self

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint.parse(self.endpoint_url)
