"""
Tests for transport and generic error classification.
"""

import asyncio
import socket
import ssl

import httpx
import pytest

from api_runner.services.error_classifier import (
    DEFAULT_SUGGESTIONS,
    TLSConfigurationError,
    TRANSPORT_RULES,
    classify_generic_error,
    classify_transport_error,
    iter_exception_chain,
)


def connect_error(message: str, cause: BaseException | None = None) -> httpx.ConnectError:
    """Build a ConnectError the way httpx raises it from a lower-level OSError."""
    try:
        try:
            if cause is not None:
                raise cause
            raise OSError(message)
        except OSError as exc:
            raise httpx.ConnectError(message) from exc
    except httpx.ConnectError as exc:
        return exc


class TestTransportTable:
    """The ordered table; first match wins."""

    def test_rule_order(self):
        assert [rule.error_type for rule in TRANSPORT_RULES] == [
            "content_encoding",
            "ssl_certificate",
            "dns",
            "connection",
            "timeout",
            "ssl_handshake",
            "ssl_peer_certificate",
            "ssl_local",
        ]

    def test_content_encoding(self):
        error = classify_transport_error(httpx.DecodingError("Error -3 while decompressing data"))
        assert error.error_type == "content_encoding"
        assert error.message.startswith("Content encoding error")

    def test_certificate_verification_from_cause(self):
        cause = ssl.SSLCertVerificationError(1, "certificate verify failed: certificate has expired")
        error = classify_transport_error(connect_error("handshake failed", cause))
        assert error.error_type == "ssl_certificate"
        assert "self-signed or expired" in error.message

    def test_certificate_verification_from_message(self):
        error = classify_transport_error(
            httpx.ConnectError("cURL error 60: SSL certificate problem: certificate verify failed")
        )
        assert error.error_type == "ssl_certificate"

    def test_dns_from_gaierror(self):
        cause = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        error = classify_transport_error(connect_error("[Errno -2] Name or service not known", cause))
        assert error.error_type == "dns"
        assert "Could not resolve host" in error.message

    @pytest.mark.parametrize("message", [
        "[Errno -3] Temporary failure in name resolution",
        "[Errno 8] nodename nor servname provided, or not known",
        "[Errno 11001] getaddrinfo failed",
    ])
    def test_dns_from_message(self, message: str):
        assert classify_transport_error(httpx.ConnectError(message)).error_type == "dns"

    def test_refused_from_cause(self):
        error = classify_transport_error(connect_error("connect failed", ConnectionRefusedError(111, "Connection refused")))
        assert error.error_type == "connection"
        assert error.message.startswith("Failed to connect to server")

    def test_refused_inside_exception_group(self):
        group = ExceptionGroup("multiple", [ConnectionRefusedError(111, "Connection refused")])
        try:
            try:
                raise OSError("All connection attempts failed") from group
            except OSError as exc:
                raise httpx.ConnectError("All connection attempts failed") from exc
        except httpx.ConnectError as exc:
            error = classify_transport_error(exc)
        assert error.error_type == "connection"

    @pytest.mark.parametrize("exc", [
        httpx.ReadTimeout("The read operation timed out"),
        httpx.ConnectTimeout(""),
        httpx.PoolTimeout(""),
        asyncio.TimeoutError(),
    ])
    def test_timeouts(self, exc: BaseException):
        error = classify_transport_error(exc, timeout=30.0)
        assert error.error_type == "timeout"
        assert error.message == "Request timed out after 30 seconds."

    def test_handshake_failure(self):
        cause = ssl.SSLError(1, "[SSL: WRONG_VERSION_NUMBER] wrong version number (_ssl.c:1006)")
        error = classify_transport_error(connect_error("[SSL: WRONG_VERSION_NUMBER] wrong version number", cause))
        assert error.error_type == "ssl_handshake"
        assert error.message.startswith("SSL connect error")

    def test_peer_certificate_rejected(self):
        cause = ssl.SSLError(1, "[SSL: SSLV3_ALERT_BAD_CERTIFICATE] sslv3 alert bad certificate")
        error = classify_transport_error(connect_error("sslv3 alert bad certificate", cause))
        assert error.error_type == "ssl_peer_certificate"
        assert error.message == "SSL peer certificate was not OK."

    def test_local_certificate_problem(self):
        try:
            try:
                raise ssl.SSLError(9, "[SSL] PEM lib (_ssl.c:3900)")
            except ssl.SSLError as exc:
                raise TLSConfigurationError(f"Could not load local TLS material: {exc}") from exc
        except TLSConfigurationError as exc:
            error = classify_transport_error(exc)
        assert error.error_type == "ssl_local"
        assert error.message == "Problem with the local SSL certificate."

    def test_certificate_rule_wins_over_dns_rule(self):
        error = classify_transport_error(
            httpx.ConnectError("certificate verify failed while resolving; name or service not known")
        )
        assert error.error_type == "ssl_certificate"

    def test_fallback_prefixes_raw_error(self):
        error = classify_transport_error(httpx.RemoteProtocolError("Server disconnected without sending a response."))
        assert error.error_type == "network_error"
        assert error.message == "Connection error: Server disconnected without sending a response."
        assert error.suggestions == DEFAULT_SUGGESTIONS

    def test_fallback_with_empty_message_uses_exception_name(self):
        error = classify_transport_error(httpx.ReadError(""))
        assert error.message == "Connection error: ReadError"

    def test_every_error_has_suggestions(self):
        for exc in [
            httpx.DecodingError("bad gzip"),
            httpx.ConnectError("[Errno 111] Connection refused"),
            httpx.ConnectError("Name or service not known"),
            httpx.ReadTimeout("timed out"),
        ]:
            assert classify_transport_error(exc).suggestions


class TestGenericClassification:
    """Exceptions raised while building the request."""

    def test_timeout_message(self):
        error = classify_generic_error(RuntimeError("operation timeout exceeded"))
        assert error.error_type == "timeout"
        assert error.message == "Request timed out."

    def test_json_message(self):
        error = classify_generic_error(ValueError("Syntax error in JSON payload"))
        assert error.error_type == "invalid_json"
        assert error.message == "Invalid JSON in request body."

    def test_url_message(self):
        error = classify_generic_error(httpx.InvalidURL("Invalid non-printable ASCII character in URL"))
        assert error.error_type == "invalid_url"
        assert error.message == "Invalid URL format."

    def test_other_messages_pass_through(self):
        error = classify_generic_error(KeyError("boom"))
        assert error.error_type == "unknown"
        assert error.message == "'boom'"
        assert error.details == "'boom'"


class TestExceptionChain:
    """Walking causes and contexts."""

    def test_walks_cause_and_context(self):
        try:
            try:
                raise ValueError("inner")
            except ValueError:
                raise KeyError("outer")
        except KeyError as exc:
            chain = list(iter_exception_chain(exc))
        assert [type(e) for e in chain] == [KeyError, ValueError]

    def test_handles_cycles(self):
        first = ValueError("first")
        second = ValueError("second")
        first.__cause__ = second
        second.__cause__ = first
        assert len(list(iter_exception_chain(first))) == 2
