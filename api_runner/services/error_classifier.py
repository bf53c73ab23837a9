"""
Error classification for request execution failures.

Transport failures (no HTTP response was obtained) are matched against an
ordered table; the first matching rule decides the message shown to the
user. Other exceptions raised while building the request are classified by
substring match on their message.

Each classified error carries a list of suggestions for that kind of
failure.
"""

import asyncio
import socket
import ssl
from dataclasses import dataclass, field
from typing import Callable, Iterator

import httpx

from ..schemas.execute import ErrorType


class TLSConfigurationError(Exception):
    """Raised when local TLS material (CA bundle, client certificate) cannot be loaded."""


@dataclass(frozen=True)
class ClassifiedError:
    """A failure reduced to something a user can act on."""
    error_type: ErrorType
    message: str
    details: str | None = None
    suggestions: list[str] = field(default_factory=list)


SUGGESTIONS: dict[str, list[str]] = {
    "content_encoding": [
        "The server advertised a Content-Encoding it did not actually use.",
        "Try sending an 'Accept-Encoding: identity' header.",
    ],
    "ssl_certificate": [
        "SSL certificate verification failed. This is common with self-signed certificates or local development APIs.",
        "For HTTPS APIs, ensure the server has a valid SSL certificate.",
        "For testing purposes, you may need to configure SSL verification settings.",
    ],
    "dns": [
        "Domain name could not be resolved. Check if the URL is correct.",
        "Verify your internet connection and DNS settings.",
    ],
    "connection": [
        "Connection to the server failed. Check if the server is running.",
        "Verify the port number and protocol (HTTP/HTTPS) are correct.",
    ],
    "timeout": [
        "Request timed out. The server may be slow or unresponsive.",
        "Try increasing the timeout value or check server status.",
    ],
    "ssl_handshake": [
        "The TLS handshake failed. Check that the server speaks HTTPS on this port.",
        "Check the SSL configuration of the server.",
    ],
    "ssl_peer_certificate": [
        "The server rejected the TLS certificate exchange.",
        "If the server requires a client certificate, configure one.",
    ],
    "ssl_local": [
        "The local CA bundle or client certificate could not be loaded.",
        "Check the configured certificate paths and file formats.",
    ],
    "invalid_json": [
        "The request body is not valid JSON. Check for trailing commas or unquoted keys.",
    ],
    "invalid_url": [
        "Check the URL format and make sure it includes http:// or https://.",
    ],
    "cancelled": [
        "The request was cancelled before it completed.",
    ],
}

DEFAULT_SUGGESTIONS = [
    "Check the URL format and ensure the API endpoint is accessible.",
    "Verify network connectivity and try again.",
]


def suggestions_for(error_type: str) -> list[str]:
    return list(SUGGESTIONS.get(error_type, DEFAULT_SUGGESTIONS))


def iter_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield exc and every exception it was raised from, including exception group members."""
    seen: set[int] = set()
    stack = [exc]
    while stack:
        current = stack.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.append(current.__cause__)
        stack.append(current.__context__)
        stack.extend(getattr(current, "exceptions", ()) or ())


def _chain_text(exc: BaseException) -> str:
    return " | ".join(str(e) for e in iter_exception_chain(exc)).lower()


def _chain_has(exc: BaseException, *types: type) -> bool:
    return any(isinstance(e, types) for e in iter_exception_chain(exc))


def _text_has(exc: BaseException, *needles: str) -> bool:
    text = _chain_text(exc)
    return any(needle in text for needle in needles)


DNS_PATTERNS = (
    "could not resolve host",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
    "name resolution",
)

REFUSED_PATTERNS = (
    "connection refused",
    "actively refused",
    "errno 111",
    "errno 61",
    "all connection attempts failed",
    "connect call failed",
    "network is unreachable",
    "no route to host",
    "port unreachable",
)

PEER_CERTIFICATE_PATTERNS = (
    "alert bad certificate",
    "bad_certificate",
    "certificate unknown",
    "certificate_unknown",
    "certificate required",
    "certificate_required",
    "peer certificate",
)

LOCAL_TLS_PATTERNS = (
    "pem lib",
    "no certificate or crl found",
    "key values mismatch",
)


def is_content_encoding_error(exc: BaseException) -> bool:
    return _chain_has(exc, httpx.DecodingError)


def is_certificate_verification_error(exc: BaseException) -> bool:
    return _chain_has(exc, ssl.SSLCertVerificationError) or _text_has(
        exc, "certificate_verify_failed", "certificate verify failed"
    )


def is_dns_error(exc: BaseException) -> bool:
    return _chain_has(exc, socket.gaierror) or _text_has(exc, *DNS_PATTERNS)


def is_connection_refused(exc: BaseException) -> bool:
    return _chain_has(exc, ConnectionRefusedError) or _text_has(exc, *REFUSED_PATTERNS)


def is_timeout(exc: BaseException) -> bool:
    return _chain_has(exc, httpx.TimeoutException, asyncio.TimeoutError, socket.timeout) or _text_has(
        exc, "timed out"
    )


def is_peer_certificate_rejected(exc: BaseException) -> bool:
    return _text_has(exc, *PEER_CERTIFICATE_PATTERNS)


def is_local_tls_problem(exc: BaseException) -> bool:
    return _chain_has(exc, TLSConfigurationError) or _text_has(exc, *LOCAL_TLS_PATTERNS)


def is_tls_handshake_error(exc: BaseException) -> bool:
    if is_peer_certificate_rejected(exc) or is_local_tls_problem(exc):
        return False
    return _chain_has(exc, ssl.SSLError) or _text_has(exc, "ssl:", "handshake")


def is_tls_error(exc: BaseException) -> bool:
    return (
        is_certificate_verification_error(exc)
        or is_tls_handshake_error(exc)
        or is_peer_certificate_rejected(exc)
        or is_local_tls_problem(exc)
    )


@dataclass(frozen=True)
class TransportRule:
    error_type: ErrorType
    message: str
    matches: Callable[[BaseException], bool]


# Ordered: the first rule that matches wins.
TRANSPORT_RULES: tuple[TransportRule, ...] = (
    TransportRule(
        "content_encoding",
        "Content encoding error. The server sent a body it could not decode.",
        is_content_encoding_error,
    ),
    TransportRule(
        "ssl_certificate",
        "SSL certificate verification failed. The server certificate may be self-signed or expired.",
        is_certificate_verification_error,
    ),
    TransportRule(
        "dns",
        "Could not resolve host. Check the domain name in the URL.",
        is_dns_error,
    ),
    TransportRule(
        "connection",
        "Failed to connect to server. The server may be down or the port closed.",
        is_connection_refused,
    ),
    TransportRule(
        "timeout",
        "Request timed out.",
        is_timeout,
    ),
    TransportRule(
        "ssl_handshake",
        "SSL connect error. The TLS handshake with the server failed.",
        is_tls_handshake_error,
    ),
    TransportRule(
        "ssl_peer_certificate",
        "SSL peer certificate was not OK.",
        is_peer_certificate_rejected,
    ),
    TransportRule(
        "ssl_local",
        "Problem with the local SSL certificate.",
        is_local_tls_problem,
    ),
)


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def classify_transport_error(exc: BaseException, timeout: float | None = None) -> ClassifiedError:
    """
    Classify a failure that happened before any HTTP response was obtained.

    Args:
        exc: The transport exception
        timeout: The timeout budget, mentioned in the message for timeouts

    Returns:
        The classified error; unmatched failures fall back to a
        "Connection error: ..." message carrying the raw error text.
    """
    details = _describe(exc)
    for rule in TRANSPORT_RULES:
        if rule.matches(exc):
            message = rule.message
            if rule.error_type == "timeout" and timeout is not None:
                message = f"Request timed out after {timeout:g} seconds."
            return ClassifiedError(
                error_type=rule.error_type,
                message=message,
                details=details,
                suggestions=suggestions_for(rule.error_type),
            )
    return ClassifiedError(
        error_type="network_error",
        message=f"Connection error: {details}",
        details=details,
        suggestions=suggestions_for("network_error"),
    )


def classify_generic_error(exc: BaseException) -> ClassifiedError:
    """
    Classify an exception raised while building the request.

    Matches on the exception message: timeouts, malformed JSON and
    malformed URLs get a fixed message; anything else is passed through.
    """
    details = _describe(exc)
    text = details.lower()
    if "timeout" in text or "timed out" in text:
        error_type, message = "timeout", "Request timed out."
    elif "json" in text or "syntax error" in text:
        error_type, message = "invalid_json", "Invalid JSON in request body."
    elif "url" in text or "uri" in text:
        error_type, message = "invalid_url", "Invalid URL format."
    else:
        error_type, message = "unknown", details
    return ClassifiedError(
        error_type=error_type,
        message=message,
        details=details,
        suggestions=suggestions_for(error_type),
    )


def classify_cancellation(reason: str) -> ClassifiedError:
    return ClassifiedError(
        error_type="cancelled",
        message=reason,
        details=None,
        suggestions=suggestions_for("cancelled"),
    )
