"""
Pydantic schemas for request execution.

An execution returns either an ``ExecuteResponse`` (a response was
received, whatever its status code) or an ``ExecuteErrorResponse`` (no
response was obtained). The ``success`` field tags which one it is.
"""

from typing import Literal, Union

from pydantic import BaseModel


ErrorType = Literal[
    "content_encoding",
    "ssl_certificate",
    "dns",
    "connection",
    "timeout",
    "ssl_handshake",
    "ssl_peer_certificate",
    "ssl_local",
    "network_error",
    "invalid_json",
    "invalid_url",
    "cancelled",
    "unknown",
]


class ExecuteOptions(BaseModel):
    """Schema for execution options."""
    verify_tls: bool | None = None


class ExecuteResponse(BaseModel):
    """
    Schema for a completed execution.

    Remote 4xx/5xx statuses land here too: the request was executed and
    ``status_code`` carries what the server answered.
    """
    success: Literal[True] = True
    status_code: int
    status_text: str
    headers: dict[str, list[str]]
    body: str
    elapsed_ms: int
    size_bytes: int
    attempts: int = 1


class ExecuteErrorResponse(BaseModel):
    """Schema for an execution that never obtained a response."""
    success: Literal[False] = False
    error: str
    error_type: ErrorType
    details: str | None = None
    suggestions: list[str] = []
    elapsed_ms: int
    attempts: int = 0


ExecutionResult = Union[ExecuteResponse, ExecuteErrorResponse]
