# Services package

from .cancellation import CancellationToken, RequestCancelled
from .error_classifier import classify_generic_error, classify_transport_error
from .history_service import HistorySink, SqlHistorySink, save_history
from .http_executor import execute_request
from .request_store import RequestStore, SqlRequestStore

__all__ = [
    "CancellationToken",
    "RequestCancelled",
    "classify_generic_error",
    "classify_transport_error",
    "HistorySink",
    "SqlHistorySink",
    "save_history",
    "execute_request",
    "RequestStore",
    "SqlRequestStore",
]
