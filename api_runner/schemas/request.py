"""
Pydantic schemas for request descriptors and saved requests.

A request descriptor is the normalized description of one HTTP request:
method, absolute URL, ordered header and query parameter entries, and an
optional typed body.
"""

from datetime import datetime
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, field_validator


# HTTP methods supported by the system
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Body types supported for requests
BodyType = Literal["json", "form-data", "x-www-form-urlencoded", "raw", "binary"]


class KeyValuePair(BaseModel):
    """A header or query parameter entry. Only active entries with a key are sent."""
    key: str | None = None
    value: str = ""
    is_active: bool = True

    @field_validator("value", mode="before")
    @classmethod
    def none_value_to_empty(cls, value):
        return "" if value is None else value


class RequestBody(BaseModel):
    """Typed request body. Empty content means no body is sent."""
    type: BodyType = "json"
    content: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, value):
        return "json" if value is None else value


def validate_absolute_url(url: str) -> str:
    """
    Check that url is an absolute http(s) URL with a host.

    The string is returned unchanged so that stored and replayed
    descriptors compare equal to what the user typed.

    Raises:
        ValueError: If the URL is relative, has no host or uses another scheme
    """
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise ValueError(f"Invalid URL: {exc}") from exc
    if parts.scheme.lower() not in ("http", "https"):
        raise ValueError("URL must use the http or https scheme")
    if not parts.hostname:
        raise ValueError("URL must be absolute and include a host")
    return url


class RequestDescriptor(BaseModel):
    """Schema describing one HTTP request to execute."""
    method: HttpMethod
    url: str
    headers: list[KeyValuePair] = []
    params: list[KeyValuePair] = []
    body: RequestBody | None = None

    @field_validator("url")
    @classmethod
    def url_must_be_absolute(cls, value: str) -> str:
        return validate_absolute_url(value)

    @field_validator("headers", "params", mode="before")
    @classmethod
    def none_to_empty_list(cls, value):
        return [] if value is None else value


class SavedRequestCreate(BaseModel):
    """Schema for saving a request definition to the store."""
    name: str
    method: HttpMethod
    url: str
    headers: list[KeyValuePair] = []
    params: list[KeyValuePair] = []
    body: RequestBody | None = None

    @field_validator("url")
    @classmethod
    def url_must_be_absolute(cls, value: str) -> str:
        return validate_absolute_url(value)


class SavedRequestResponse(BaseModel):
    """Schema for a saved request including system-generated fields."""
    id: int
    name: str
    method: HttpMethod
    url: str
    headers: list[KeyValuePair] = []
    params: list[KeyValuePair] = []
    body: RequestBody | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
