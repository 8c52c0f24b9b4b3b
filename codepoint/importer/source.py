"""Remote Code-Point Open download descriptor and trusted-origin checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from codepoint.common.config_loader import SourceSettings
from codepoint.common.errors import UpstreamError
from codepoint.common.http import HttpClient, HttpRequestError, TimeoutConfig

DESCRIPTOR_FIELDS = ("url", "md5", "size")


@dataclass(frozen=True)
class SourceDescriptor:
    url: str
    content_hash: str
    size: int

    @classmethod
    def from_payload(cls, payload: Any) -> "SourceDescriptor":
        if not isinstance(payload, list) or not payload:
            raise UpstreamError("Unexpected data returned from postcode import")
        first = payload[0]
        if not isinstance(first, dict) or any(first.get(field) in (None, "") for field in DESCRIPTOR_FIELDS):
            raise UpstreamError("Unexpected data returned from postcode import")
        try:
            size = int(first["size"])
        except (TypeError, ValueError) as exc:
            raise UpstreamError("Unexpected data returned from postcode import") from exc
        return cls(url=str(first["url"]), content_hash=str(first["md5"]).lower(), size=size)


def downloads_url(source: SourceSettings) -> str:
    return f"{source.base_url}/products/{source.product}/downloads"


def fetch_source_descriptor(http_client: HttpClient, source: SourceSettings) -> SourceDescriptor:
    try:
        payload = http_client.get_json(
            downloads_url(source),
            params={"key": source.api_key, "format": source.format},
            timeout=TimeoutConfig(connect=20, read=source.timeout_seconds),
        )
    except HttpRequestError as exc:
        raise UpstreamError("Failed to access postcode data") from exc
    return SourceDescriptor.from_payload(payload)


def is_trusted_url(url: str, trusted_prefix: str) -> bool:
    candidate = urlparse(url)
    trusted = urlparse(trusted_prefix)
    if candidate.scheme.lower() != trusted.scheme.lower():
        return False
    if candidate.netloc.lower() != trusted.netloc.lower():
        return False
    return candidate.path.startswith(trusted.path)
