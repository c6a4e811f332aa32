"""HTTP client for downloading BIOS configuration documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from bioscfg import __version__

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_USER_AGENT = f"bioscfg/{__version__}"


@dataclass(slots=True)
class FetchResult:
    """Result of a BIOS config download."""

    url: str
    status_code: int
    status_text: str
    content: str
    is_success: bool
    error: str | None = None


class HttpFetcher:
    """HTTP client wrapper with retry, timeout, and user-agent configuration."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self._client = httpx.Client(
            timeout=self._timeout,
            headers={"User-Agent": user_agent},
            transport=transport or httpx.HTTPTransport(retries=max_retries),
            follow_redirects=True,
        )

    def fetch(self, url: str) -> FetchResult:
        """GET ``url``; only HTTP 200 counts as success."""

        try:
            response = self._client.get(url)
        except httpx.TimeoutException:
            logger.warning("Timeout fetching %s", url)
            return FetchResult(
                url=url,
                status_code=0,
                status_text="",
                content="",
                is_success=False,
                error="timeout",
            )
        except httpx.HTTPError as exc:
            logger.warning("HTTP error fetching %s: %s", url, exc)
            return FetchResult(
                url=url,
                status_code=0,
                status_text="",
                content="",
                is_success=False,
                error=str(exc),
            )

        status_text = f"{response.status_code} {response.reason_phrase}".strip()
        is_success = response.status_code == httpx.codes.OK
        return FetchResult(
            url=url,
            status_code=response.status_code,
            status_text=status_text,
            content=response.text if is_success else "",
            is_success=is_success,
            error=None if is_success else status_text,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
