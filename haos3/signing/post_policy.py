"""Policies of browser-based POST uploads."""

from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

type Condition = list[str | int]


def format_expiration(date: datetime) -> str:
    """Format an expiration as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    date = date.replace(tzinfo=UTC) if date.tzinfo is None else date.astimezone(UTC)
    return f"{date:%Y-%m-%dT%H:%M:%S}.{date.microsecond // 1000:03d}Z"


class PostPolicy(BaseModel):
    """Conditions a browser form upload must satisfy.

    Exactly one of ``key`` and ``key_starts_with`` must be set.
    """

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(min_length=1, description="Bucket receiving the upload.")
    expiration: datetime = Field(description="Time after which the policy is rejected.")
    key: str | None = Field(default=None, min_length=1, description="Exact object key.")
    key_starts_with: str | None = Field(default=None, min_length=1, description="Required key prefix.")
    content_type: str | None = Field(default=None, min_length=1, description="Required content type.")
    content_length_range: tuple[int, int] | None = Field(
        default=None, description="Inclusive lower and upper limit of the upload size in bytes."
    )

    @model_validator(mode="after")
    def check_conditions(self) -> Self:
        if (self.key is None) == (self.key_starts_with is None):
            msg = "Exactly one of key and key_starts_with must be set"
            raise ValueError(msg)
        if self.content_length_range is not None:
            lower, upper = self.content_length_range
            if lower < 0 or lower > upper:
                msg = f"Invalid content length range {lower}-{upper}"
                raise ValueError(msg)
        return self

    def conditions(self) -> list[Condition]:
        """Policy conditions in the order they are written to the document."""
        conditions: list[Condition] = [["eq", "$bucket", self.bucket]]
        if self.key is not None:
            conditions.append(["eq", "$key", self.key])
        if self.key_starts_with is not None:
            conditions.append(["starts-with", "$key", self.key_starts_with])
        if self.content_type is not None:
            conditions.append(["eq", "$Content-Type", self.content_type])
        if self.content_length_range is not None:
            conditions.append(["content-length-range", *self.content_length_range])
        return conditions

    def form_data(self) -> dict[str, str]:
        """Form fields implied by the conditions."""
        fields = {"bucket": self.bucket, "key": self.key or self.key_starts_with or ""}
        if self.content_type is not None:
            fields["Content-Type"] = self.content_type
        return fields
