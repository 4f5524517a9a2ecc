"""HTTP client construction shared by the manifest client and the downloader."""

from __future__ import annotations

import ssl

import httpx
import truststore

from .config import DEFAULT_NETWORK_TIMEOUT

USER_AGENT = "jvm-provisioner"


def create_http_client(timeout: float = DEFAULT_NETWORK_TIMEOUT, verify: bool = True) -> httpx.Client:
    """Return an httpx client that trusts the operating system certificate store."""
    ssl_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT) if verify else False
    return httpx.Client(
        verify=ssl_context,
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )
