"""
Site monitor: validated configuration bound to a dedicated HTTP client.
"""

import ssl
import time
from datetime import datetime, timezone
from typing import Any, List, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from site_monitor.certificates import TrustAnchorProvider, inspect_peer_chain
from site_monitor.config import MonitorConfig
from site_monitor.context import CheckContext, ContextCancelled
from site_monitor.exceptions import ConfigurationError, RequestError, TransportError
from site_monitor.logger import get_logger, log_check_start
from site_monitor.models import CheckResult

DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
DEFAULT_UP_STATUS_CODES = frozenset({200, 201})

CACHE_BUSTING_PARAM = "nocache"
CACHE_BUSTING_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

logger = get_logger("monitor")


def sanitize_url(raw_url: str) -> str:
    """
    Validate a URL and return its canonical serialization.

    The host name itself must be present: a netloc holding only a port or
    credentials, such as ``http://:80``, is rejected.

    Raises:
        ValueError: URL cannot be parsed or lacks a scheme or host
    """
    parts = urlsplit(raw_url)

    if not parts.scheme:
        raise ValueError(f"missing scheme {raw_url!r}")

    if not parts.hostname:
        raise ValueError(f"missing host {raw_url!r}")

    return urlunsplit(parts)


def create_monitor(
    config: MonitorConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    trust_anchors: Optional[TrustAnchorProvider] = None,
) -> "Monitor":
    """
    Validate ``config`` and create a monitor bound to its own HTTP client.

    Args:
        config: Site configuration
        transport: Transport for the client, a fresh connection pool by default
        trust_anchors: Root certificate provider for certificate verification

    Returns:
        Ready to use monitor

    Raises:
        ConfigurationError: Method missing, negative timeout or invalid URL
    """
    updates: dict = {}
    if config.request_timeout == 0:
        updates["request_timeout"] = DEFAULT_REQUEST_TIMEOUT

    if not config.up_status_codes:
        updates["up_status_codes"] = DEFAULT_UP_STATUS_CODES

    if not config.method:
        raise ConfigurationError("missing HTTP method")

    if config.request_timeout < 0:
        raise ConfigurationError("negative timeout")

    try:
        updates["url"] = sanitize_url(config.url)
    except ValueError as e:
        raise ConfigurationError(f"invalid URL: {e}") from e

    config = config.model_copy(update=updates)

    client = httpx.AsyncClient(
        timeout=config.request_timeout,
        verify=not config.ignore_cert,
        http2=True,
        follow_redirects=not config.dont_follow_redirect,
        transport=transport,
    )

    return Monitor(config, client, trust_anchors=trust_anchors)


class Monitor:
    """
    Checks a single site.

    Instances are created by ``create_monitor``; the constructor binds an
    already validated configuration to a client without checking it. A
    monitor holds no per-check state, so concurrent ``check`` calls are safe.
    """

    def __init__(
        self,
        config: MonitorConfig,
        client: httpx.AsyncClient,
        trust_anchors: Optional[TrustAnchorProvider] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._trust_anchors = trust_anchors

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def url(self) -> str:
        return self._config.url

    def is_success_status(self, code: int) -> bool:
        """Determine if a status code counts as up."""
        if not self._config.up_status_codes:
            return 200 <= code < 300

        return code in self._config.up_status_codes

    async def check(self, ctx: Optional[CheckContext] = None) -> CheckResult:
        """
        Execute one request against the site.

        Args:
            ctx: Cancellation and deadline for this check; the configured
                request timeout applies on top of it

        Returns:
            Check result

        Raises:
            RequestError: The request could not be built
            TransportError: The request failed, was cancelled or timed out
        """
        url = self._config.url
        ctx = ctx or CheckContext.background()
        if self._config.request_timeout > 0:
            ctx = ctx.with_timeout(self._config.request_timeout)

        try:
            request = self._build_request()
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            raise RequestError(f"failed to create request for {url!r}: {e}", url, e) from e

        log_check_start(logger, url, request.method)

        start = _now()
        try:
            response = await ctx.run(self._client.send(request, stream=True))
        except (httpx.HTTPError, httpx.InvalidURL, ContextCancelled) as e:
            raise TransportError(f"failed to send request for {url!r}: {e}", url, e) from e
        end = _now()

        try:
            peer_chain = _peer_certificates(response)
            await ctx.run(_discard_body(response))
        except (httpx.HTTPError, ContextCancelled) as e:
            raise TransportError(f"failed to read response body for {url!r}: {e}", url, e) from e
        finally:
            await response.aclose()

        cert_info = None
        if peer_chain:
            # Host of the final request after any redirects, IDNs as A-labels
            cert_info = inspect_peer_chain(
                peer_chain,
                response.url.raw_host.decode("ascii"),
                trust_anchors=self._trust_anchors,
            )

        return CheckResult(
            url=url,
            status_code=response.status_code,
            start=start,
            end=end,
            cert_info=cert_info,
        )

    def _build_request(self) -> httpx.Request:
        headers = httpx.Headers(self._config.headers)
        headers.update(CACHE_BUSTING_HEADERS)
        target = httpx.URL(self._config.url).copy_add_param(
            CACHE_BUSTING_PARAM, str(time.time_ns())
        )
        return self._client.build_request(self._config.method, target, headers=headers)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "Monitor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"Monitor(method={self._config.method!r}, url={self._config.url!r})"


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _discard_body(response: httpx.Response) -> None:
    async for _ in response.aiter_raw():
        pass


def _peer_certificates(response: httpx.Response) -> List[bytes]:
    """DER encoded certificates presented by the server, leaf first."""
    stream = response.extensions.get("network_stream")
    if stream is None:
        return []

    ssl_object = stream.get_extra_info("ssl_object")
    if ssl_object is None:
        return []

    # Public from Python 3.13 on, only on the native object before that
    get_chain = getattr(ssl_object, "get_unverified_chain", None)
    if get_chain is not None:
        chain = get_chain()
        if chain:
            return list(chain)
    else:
        native = getattr(ssl_object, "_sslobj", None)
        native_get_chain = getattr(native, "get_unverified_chain", None)
        if native_get_chain is not None:
            chain = native_get_chain()
            if chain:
                return [ssl.PEM_cert_to_DER_cert(cert.public_bytes()) for cert in chain]

    leaf = ssl_object.getpeercert(binary_form=True)
    return [leaf] if leaf else []
