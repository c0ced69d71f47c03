import logging
import re
from typing import Mapping, Optional

logger = logging.getLogger("phbsparql")

_SENSITIVE_HEADERS = {"authorization", "x-api-key", "proxy-authorization"}


def redact_headers(headers: Optional[Mapping[str, str]]) -> dict:
    """Return a copy of ``headers`` with credential values replaced by REDACTED."""
    if not headers:
        return {}
    return {
        key: ("REDACTED" if key.lower() in _SENSITIVE_HEADERS else value)
        for key, value in headers.items()
    }


def log_http(
    method: str,
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    status: Optional[int] = None,
    verbose: bool = False,
) -> None:
    """
    Log an HTTP exchange at DEBUG level when ``verbose`` is set.

    Parameters:
    - method: HTTP method, e.g. "GET"
    - url: request URL
    - headers: request headers (credentials are redacted)
    - status: response status code, if a response was received
    """
    if not verbose:
        return
    message = f"[HTTP] {method} {url}"
    if headers:
        message += f" headers={redact_headers(headers)}"
    if status is not None:
        message += f" -> {status}"
    logger.debug(message)


def local_id_from_uri(uri: str) -> str:
    """
    Return the last segment of a resource URI.

    "http://example.org/personas#P1" -> "P1"
    "http://dbpedia.org/resource/Juana_Azurduy" -> "Juana_Azurduy"
    """
    if not uri:
        return ""
    if "#" in uri:
        return uri.rsplit("#", 1)[-1]
    return uri.rstrip("/").rsplit("/", 1)[-1]


def slugify(name: str) -> str:
    """Build an identifier from a display name: lowercase, runs of other characters become "_"."""
    slug = re.sub(r"[^a-z0-9]", "_", (name or "").lower())
    slug = re.sub(r"_+", "_", slug)
    return slug.strip("_")
