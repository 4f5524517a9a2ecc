"""Remote manifest retrieval.

A manifest lists the runtimes a server offers, either as a bare JSON list or
wrapped in an object:

    {
        "cacheTimeInMillis": 5000,
        "runtimes": [
            {"version": "1.8.145", "vendor": "adopt", "os": "LINUX64",
             "href": "https://example.com/jvms/adopt-1.8.145-linux64.zip"}
        ]
    }

Fetching never raises: an unreachable endpoint or an unusable payload yields
an empty list so resolution can fall back to local runtimes.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

import httpx
from pydantic import ValidationError

from .config import DEFAULT_NETWORK_TIMEOUT
from .models import RemoteRuntimeDescriptor
from .net import create_http_client

logger = logging.getLogger(__name__)


class ManifestClient:
    """Fetch and parse runtime manifests over HTTP."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_NETWORK_TIMEOUT,
    ):
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_http_client(self) -> httpx.Client:
        if self._client is None:
            self._client = create_http_client(self.timeout)
        return self._client

    def fetch(self, endpoint: str, timeout: Optional[float] = None) -> list[RemoteRuntimeDescriptor]:
        """Return the runtimes advertised at *endpoint*; ``[]`` on any failure."""
        effective_timeout = self.timeout if timeout is None else timeout
        logger.debug("Fetching manifest %s (timeout %.1fs)", endpoint, effective_timeout)
        # httpx timeouts bound each read; the deadline bounds the whole fetch
        deadline = time.monotonic() + effective_timeout
        try:
            with self._get_http_client().stream("GET", endpoint, timeout=effective_timeout) as response:
                if not response.is_success:
                    logger.warning("Manifest %s returned HTTP %d", endpoint, response.status_code)
                    return []
                body = bytearray()
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        logger.warning(
                            "Timed out fetching manifest %s after %.1fs", endpoint, effective_timeout
                        )
                        return []
                    body.extend(chunk)
            payload = json.loads(bytes(body))
        except httpx.TimeoutException:
            logger.warning("Timed out fetching manifest %s", endpoint)
            return []
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Cannot fetch manifest %s: %s", endpoint, exc)
            return []
        except ValueError as exc:
            logger.warning("Manifest %s is not valid JSON: %s", endpoint, exc)
            return []

        descriptors = parse_manifest(payload, base_url=str(response.url))
        logger.debug("Manifest %s lists %d runtime(s)", endpoint, len(descriptors))
        return descriptors

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "ManifestClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def parse_manifest(payload: Any, base_url: Optional[str] = None) -> list[RemoteRuntimeDescriptor]:
    """Turn a decoded manifest into descriptors, skipping invalid entries.

    Args:
        payload: Decoded JSON (list of entries, or object with ``runtimes``)
        base_url: URL the manifest was served from; relative hrefs are resolved against it
    """
    if isinstance(payload, dict):
        entries = payload.get("runtimes")
    else:
        entries = payload
    if not isinstance(entries, list):
        logger.warning("Manifest has no runtime list")
        return []

    descriptors: list[RemoteRuntimeDescriptor] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("Skipping manifest entry %r: not an object", entry)
            continue
        try:
            descriptor = RemoteRuntimeDescriptor.model_validate(entry)
        except (ValidationError, ValueError) as exc:
            logger.warning("Skipping invalid manifest entry %r: %s", entry, exc)
            continue
        if base_url and not urlparse(descriptor.url).scheme:
            descriptor = descriptor.model_copy(update={"url": urljoin(base_url, descriptor.url)})
        descriptors.append(descriptor)
    return descriptors
