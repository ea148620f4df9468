"""S3 endpoint parsing and region resolution."""

import ipaddress
import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from haos3.clients.abstract import S3InvalidEndpointClientException

DEFAULT_REGION = "us-east-1"

AWS_S3_HOST = "s3.amazonaws.com"

_AWS_REGIONAL_HOST = re.compile(r"^s3-(?P<region>[a-z]{2}(?:-[a-z]+)+-\d)\.amazonaws\.com$")
_HOST_LABEL = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*$")

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


def _is_valid_hostname(host: str) -> bool:
    if not 1 <= len(host) <= 253 or not host[-1].isalnum():
        return False
    return all(1 <= len(label) <= 63 and _HOST_LABEL.match(label) for label in host.split("."))


def region_for_host(host: str) -> str:
    """Resolve the signing region of an S3 host. Unknown hosts sign for ``us-east-1``."""
    if match := _AWS_REGIONAL_HOST.match(host):
        return match.group("region")
    return DEFAULT_REGION


@dataclass(frozen=True)
class Endpoint:
    """Scheme, host and optional port of an S3 service. Immutable once built."""

    scheme: Literal["http", "https"]
    host: str
    port: int | None = None

    def __post_init__(self) -> None:
        if self.scheme not in _DEFAULT_PORTS:
            msg = f"Unsupported scheme {self.scheme!r}, expected 'http' or 'https'"
            raise S3InvalidEndpointClientException(msg)
        if not (_is_ip_address(self.host) or _is_valid_hostname(self.host)):
            msg = f"Invalid host {self.host!r}"
            raise S3InvalidEndpointClientException(msg)
        if self.host.endswith(".amazonaws.com") and self.host != AWS_S3_HOST:
            if not _AWS_REGIONAL_HOST.match(self.host):
                msg = f"For Amazon S3, host should be {AWS_S3_HOST!r}, got {self.host!r}"
                raise S3InvalidEndpointClientException(msg)
        if self.port is not None and not 1 <= self.port <= 65535:
            msg = f"Port must be in range of 1 to 65535, got {self.port}"
            raise S3InvalidEndpointClientException(msg)

    @classmethod
    def parse(cls, endpoint: str, port: int | None = None, *, secure: bool = True) -> "Endpoint":
        """Parse an endpoint given as a URL or as a bare host.

        For URLs the scheme and port come from the URL itself and ``port`` and
        ``secure`` are ignored. A URL must not carry a path.

        Args:
            endpoint: ``https://host:port`` style URL, hostname, IPv4 or IPv6 address.
            port: Port for bare hosts. ``None`` uses the scheme default.
            secure: Whether a bare host is reached over HTTPS.

        Raises:
            S3InvalidEndpointClientException: If the endpoint is not usable.

        """
        if not endpoint or not endpoint.strip():
            msg = "Endpoint must not be empty"
            raise S3InvalidEndpointClientException(msg)

        if "://" in endpoint:
            parts = urlsplit(endpoint)
            if parts.path not in ("", "/") or parts.query or parts.fragment:
                msg = f"No path allowed in endpoint {endpoint!r}"
                raise S3InvalidEndpointClientException(msg)
            if not parts.hostname:
                msg = f"No host in endpoint {endpoint!r}"
                raise S3InvalidEndpointClientException(msg)
            try:
                url_port = parts.port
            except ValueError as e:
                msg = f"Invalid port in endpoint {endpoint!r}"
                raise S3InvalidEndpointClientException(msg) from e
            return cls(scheme=parts.scheme.lower(), host=parts.hostname, port=url_port)  # type: ignore[arg-type]

        return cls(scheme="https" if secure else "http", host=endpoint.strip(), port=port)

    @property
    def is_secure(self) -> bool:
        return self.scheme == "https"

    @property
    def host_header(self) -> str:
        """``Host`` header value. Default ports are omitted."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is None or self.port == _DEFAULT_PORTS[self.scheme]:
            return host
        return f"{host}:{self.port}"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host_header}"

    @property
    def region(self) -> str:
        return region_for_host(self.host)
