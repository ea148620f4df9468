"""HTTP transports."""

from haos3.transport.abstract import AbstractTransport, TransportResponse
from haos3.transport.httpx import HttpxResponse, HttpxTransport

__all__ = [
    "AbstractTransport",
    "HttpxResponse",
    "HttpxTransport",
    "TransportResponse",
]
