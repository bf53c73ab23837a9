"""
HTTP execution service for sending HTTP requests.

This service executes one request descriptor per call using httpx:
it builds headers, query string and body, dispatches with a bounded
timeout and retry policy, classifies transport failures and hands one
history record to the history sink for every call.

The executor never raises. Callers always get an ``ExecuteResponse``
(a response was received, whatever its status) or an
``ExecuteErrorResponse`` (no response was obtained).
"""

import asyncio
import json
import logging
import math
import ssl
import time
from typing import Any
from urllib.parse import parse_qs

import httpx
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_fixed

from ..config import Settings, get_settings
from ..schemas.execute import ExecuteErrorResponse, ExecuteResponse, ExecutionResult
from ..schemas.history import HistoryRecord
from ..schemas.request import KeyValuePair, RequestBody, RequestDescriptor
from .cancellation import CancellationToken, RequestCancelled
from .error_classifier import (
    ClassifiedError,
    TLSConfigurationError,
    classify_cancellation,
    classify_generic_error,
    classify_transport_error,
    is_tls_error,
)
from .history_service import HistorySink

logger = logging.getLogger(__name__)

# Methods that can be resent without risking duplicate side effects
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


def active_pairs(entries: list[KeyValuePair]) -> list[tuple[str, str]]:
    """Return (key, value) for active entries that have a key, in order."""
    return [(entry.key, entry.value) for entry in entries if entry.is_active and entry.key]


def build_url(url: str, params: list[KeyValuePair]) -> str:
    """
    Merge active query parameters into url.

    Parameters already in the URL's query string are kept unless an active
    parameter with the same name replaces them. With no active parameters
    the URL is returned unmodified.
    """
    pairs = active_pairs(params)
    if not pairs:
        return url
    return str(httpx.URL(url).copy_merge_params(pairs))


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text} is out of range for JSON")
    return value


def _has_header(headers: list[tuple[str, str]], name: str) -> bool:
    return any(key.lower() == name.lower() for key, _ in headers)


def encode_body(body: RequestBody | None, headers: list[tuple[str, str]]) -> dict[str, Any]:
    """
    Build the httpx body arguments for a request body.

    Args:
        body: The declared body, or None
        headers: Outgoing headers; a text/plain Content-Type is appended for
            raw bodies when the user did not set one

    Returns:
        Keyword arguments for ``httpx.AsyncClient.request`` (empty when no
        body should be sent)
    """
    if body is None or not body.content:
        return {}

    if body.type == "json":
        try:
            payload = json.loads(body.content, parse_constant=_reject_constant, parse_float=_finite_float)
        except (ValueError, RecursionError) as exc:
            logger.info("Request body is not valid JSON (%s); sending an empty payload", exc)
            payload = {}
        if payload is None:
            payload = {}
        return {"json": payload}

    if body.type == "x-www-form-urlencoded":
        return {"data": parse_qs(body.content, keep_blank_values=True)}

    if body.type == "raw":
        if not _has_header(headers, "Content-Type"):
            headers.append(("Content-Type", "text/plain"))
        return {"content": body.content}

    # form-data, binary: passed through as-is
    return {"content": body.content.encode("utf-8")}


def build_request_kwargs(descriptor: RequestDescriptor) -> dict[str, Any]:
    """Translate a descriptor into keyword arguments for ``httpx.AsyncClient.request``."""
    headers = active_pairs(descriptor.headers)
    body_kwargs = encode_body(descriptor.body, headers)
    return {
        "method": descriptor.method,
        "url": build_url(descriptor.url, descriptor.params),
        "headers": headers,
        **body_kwargs,
    }


def build_tls_verify(settings: Settings, verify_tls: bool | None = None) -> ssl.SSLContext | bool:
    """
    Build the ``verify`` argument for httpx from settings.

    Args:
        settings: Application settings
        verify_tls: Per-execution override of ``settings.verify_tls``

    Raises:
        TLSConfigurationError: If the CA bundle or client certificate cannot be loaded
    """
    verify = settings.verify_tls if verify_tls is None else verify_tls
    if not (settings.ca_bundle or settings.client_cert):
        return verify

    try:
        context = ssl.create_default_context(cafile=settings.ca_bundle)
        if not verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if settings.client_cert:
            context.load_cert_chain(settings.client_cert, settings.client_key)
    except OSError as exc:
        raise TLSConfigurationError(f"Could not load local TLS material: {exc}") from exc
    return context


def is_connection_failure(exc: BaseException) -> bool:
    """True for failures to establish a connection: DNS, refused or reset while connecting."""
    return isinstance(exc, httpx.ConnectError) and not is_tls_error(exc)


def should_retry(exc: BaseException, method: str, settings: Settings) -> bool:
    """Retry only connection-establishment failures; never timeouts or received responses."""
    if not is_connection_failure(exc):
        return False
    if settings.retry_idempotent_only and method not in IDEMPOTENT_METHODS:
        return False
    return True


def collect_headers(headers: httpx.Headers) -> dict[str, list[str]]:
    """Convert response headers to a multi-valued map."""
    collected: dict[str, list[str]] = {}
    for key, value in headers.multi_items():
        collected.setdefault(key.lower(), []).append(value)
    return collected


def elapsed_ms_since(start_time: float) -> int:
    """Milliseconds since start_time, rounded, never less than 1."""
    return max(1, round((time.perf_counter() - start_time) * 1000))


def record_history(
    history: HistorySink | None,
    descriptor: RequestDescriptor,
    result: ExecutionResult,
    request_id: int | None = None,
) -> None:
    """Hand one history record to the sink. Sink failures are logged, not raised."""
    if history is None:
        return
    record = HistoryRecord(
        request_id=request_id,
        method=descriptor.method,
        url=descriptor.url,
        request_data=descriptor.model_dump(mode="json"),
        response_data=result.model_dump(mode="json"),
        elapsed_ms=result.elapsed_ms,
        status_code=result.status_code if isinstance(result, ExecuteResponse) else None,
    )
    try:
        history.record(record)
    except Exception:
        logger.exception("Failed to record history for %s %s", descriptor.method, descriptor.url)


async def execute_request(
    descriptor: RequestDescriptor,
    *,
    history: HistorySink | None = None,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    cancel_token: CancellationToken | None = None,
    request_id: int | None = None,
    verify_tls: bool | None = None,
) -> ExecutionResult:
    """
    Execute an HTTP request and return the normalized result.

    Args:
        descriptor: The request to execute
        history: Sink receiving exactly one record for this call
        settings: Timeouts, retry and TLS policy; defaults to application settings
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        cancel_token: Optional token the caller can fire to abort the execution
        request_id: ID of the saved request being executed, if any
        verify_tls: Per-execution override of TLS certificate verification

    Returns:
        ExecuteResponse when a response was received, ExecuteErrorResponse otherwise
    """
    settings = settings or get_settings()
    start_time = time.perf_counter()
    attempts = 0

    async def send(client: httpx.AsyncClient, request_kwargs: dict[str, Any]) -> httpx.Response:
        nonlocal attempts
        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.max_retries + 1),
            wait=wait_fixed(settings.retry_backoff),
            retry=retry_if_exception(lambda exc: should_retry(exc, descriptor.method, settings)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=cancel_token.sleep if cancel_token is not None else asyncio.sleep,
            reraise=True,
        )
        response = None
        async for attempt in retrying:
            with attempt:
                attempts += 1
                if cancel_token is not None:
                    response = await cancel_token.run(client.request(**request_kwargs))
                else:
                    response = await client.request(**request_kwargs)
        return response

    error: ClassifiedError
    try:
        request_kwargs = build_request_kwargs(descriptor)
        verify = build_tls_verify(settings, verify_tls)
        logger.debug("Dispatching %s %s", descriptor.method, request_kwargs["url"])

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout, connect=settings.connect_timeout),
            follow_redirects=True,
            max_redirects=settings.max_redirects,
            verify=verify,
            transport=transport,
        ) as client:
            response = await asyncio.wait_for(
                send(client, request_kwargs), timeout=settings.request_timeout
            )

        result = ExecuteResponse(
            status_code=response.status_code,
            status_text=response.reason_phrase or "",
            headers=collect_headers(response.headers),
            body=response.text,
            elapsed_ms=elapsed_ms_since(start_time),
            size_bytes=len(response.content),
            attempts=attempts,
        )
        logger.debug(
            "%s %s -> %s in %sms", descriptor.method, descriptor.url,
            result.status_code, result.elapsed_ms
        )
        record_history(history, descriptor, result, request_id)
        return result

    except RequestCancelled as exc:
        error = classify_cancellation(exc.reason)
    except httpx.ConnectTimeout as exc:
        error = classify_transport_error(exc, timeout=settings.connect_timeout)
    except (httpx.RequestError, asyncio.TimeoutError, TLSConfigurationError) as exc:
        error = classify_transport_error(exc, timeout=settings.request_timeout)
    except Exception as exc:
        error = classify_generic_error(exc)
        if error.error_type == "unknown":
            logger.warning("Unexpected error executing %s %s", descriptor.method, descriptor.url, exc_info=True)

    result = ExecuteErrorResponse(
        error=error.message,
        error_type=error.error_type,
        details=error.details,
        suggestions=error.suggestions,
        elapsed_ms=elapsed_ms_since(start_time),
        attempts=attempts,
    )
    logger.info(
        "%s %s failed after %d attempt(s): %s",
        descriptor.method, descriptor.url, attempts, error.message
    )
    record_history(history, descriptor, result, request_id)
    return result
