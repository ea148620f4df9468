"""Credentials and credential providers.

The client asks its provider for credentials right before signing each
request and never keeps them afterwards, so providers are free to rotate them.
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class Credentials:
    """Access key pair, optionally with a session token."""

    access_key: str
    secret_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.access_key or not self.secret_key:
            msg = "Both access key and secret key are required"
            raise ValueError(msg)


class AbstractCredentialsProvider(Protocol):
    """Source of credentials for request signing."""

    async def get_credentials(self) -> Credentials | None:
        """Return credentials for the next request.

        Returns:
            Credentials to sign with, or ``None`` to send the request unsigned.

        """
        ...


class StaticCredentialsProvider:
    """Provider returning the same credentials for every request."""

    def __init__(self, access_key: str, secret_key: str, session_token: str | None = None) -> None:
        self._credentials = Credentials(access_key, secret_key, session_token)

    async def get_credentials(self) -> Credentials:
        return self._credentials


class AnonymousCredentialsProvider:
    """Provider for anonymous access. Requests are sent without a signature."""

    async def get_credentials(self) -> None:
        return None
