"""
Wildberries API client with bounded retry.

One client instance talks to one API host (content or supplies).
The token and base URL come from an explicit WildberriesConfig; the
client never reads the environment itself.
"""

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

import requests
import structlog

from config.settings import Settings
from exceptions import (
    ConfigError,
    ExhaustedRetriesError,
    MarketplaceError,
    RemoteError,
    TransientRemoteError,
)

logger = structlog.get_logger(__name__)


# Anything outside printable ASCII breaks the Authorization header
_NON_TOKEN_CHARS = re.compile(r"[^\x21-\x7E]")

CARDS_LIST_PATH = "/content/v2/get/cards/list"
SUPPLIES_LIST_PATH = "/api/v1/supplies"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff schedule for 429/5xx responses.

    attempts is the total number of calls, so there are attempts - 1
    sleeps. Delays start at base_delay_ms, double, and stop growing at
    max_delay_ms.
    """

    attempts: int = 5
    base_delay_ms: int = 400
    max_delay_ms: int = 4000

    def delays(self) -> list[float]:
        """Sleep durations in seconds between consecutive attempts."""
        out = []
        delay = self.base_delay_ms
        for _ in range(max(self.attempts - 1, 0)):
            out.append(delay / 1000)
            delay = min(delay * 2, self.max_delay_ms)
        return out

    def schedule(self) -> Iterator[tuple[int, Optional[float]]]:
        """
        Yield (attempt_number, delay_after_failure).

        The last attempt yields None: there is nothing to wait for.
        """
        delays = self.delays()
        for index in range(self.attempts):
            yield index + 1, delays[index] if index < len(delays) else None


@dataclass(frozen=True)
class WildberriesConfig:
    """Connection settings for one Wildberries API host."""

    name: str
    base_url: str
    token_sources: tuple[tuple[str, Optional[str]], ...]
    timeout: float = 30.0
    retry: RetryPolicy = RetryPolicy()

    @classmethod
    def content(cls, settings: Settings) -> "WildberriesConfig":
        """Content API: prefers WB_CONTENT_TOKEN."""
        return cls(
            name="content",
            base_url=settings.wb_content_base_url,
            token_sources=(
                ("WB_CONTENT_TOKEN", settings.wb_content_token),
                ("WB_API_TOKEN", settings.wb_api_token),
            ),
            timeout=settings.wb_request_timeout,
            retry=_retry_from_settings(settings),
        )

    @classmethod
    def supplies(cls, settings: Settings) -> "WildberriesConfig":
        """Supplies API: prefers WB_API_TOKEN."""
        return cls(
            name="supplies",
            base_url=settings.wb_supplies_base_url,
            token_sources=(
                ("WB_API_TOKEN", settings.wb_api_token),
                ("WB_CONTENT_TOKEN", settings.wb_content_token),
            ),
            timeout=settings.wb_request_timeout,
            retry=_retry_from_settings(settings),
        )


def _retry_from_settings(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        attempts=settings.wb_retry_attempts,
        base_delay_ms=settings.wb_retry_base_delay_ms,
        max_delay_ms=settings.wb_retry_max_delay_ms,
    )


def clean_token(raw: Optional[str]) -> str:
    """Strip whitespace and control characters from a token value."""
    return _NON_TOKEN_CHARS.sub("", raw or "").strip()


class WildberriesClient:
    """
    HTTP client for one Wildberries API host.

    Usage:
        client = WildberriesClient(WildberriesConfig.content(settings))
        page = client.request(CARDS_LIST_PATH, body={...})
    """

    def __init__(
        self,
        config: WildberriesConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.session = session or requests.Session()
        self._sleep = sleep
        self._token: Optional[str] = None
        self._token_source = "none"

    # ===================
    # TOKEN
    # ===================

    def resolve_token(self) -> str:
        """
        Pick the first configured token source and clean it.

        The first non-empty source wins even if cleaning empties it.

        Raises:
            ConfigError: If no source is set or the token cleans to ""
        """
        if self._token is not None:
            return self._token

        for source, raw in self.config.token_sources:
            if raw:
                token = clean_token(raw)
                if token:
                    self._token = token
                    self._token_source = source
                    return token
                break

        logger.error(
            "wb_token_missing",
            client=self.config.name,
            sources=[source for source, _ in self.config.token_sources]
        )
        raise ConfigError(
            "no token",
            details={"sources": [source for source, _ in self.config.token_sources]}
        )

    def token_info(self) -> dict:
        """Token diagnostics safe to return to callers: source, length, short hash."""
        try:
            token = self.resolve_token()
        except ConfigError:
            return {"source": "none", "length": 0, "hash": ""}
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
        return {
            "source": self._token_source,
            "length": len(token),
            "hash": digest[:12],
        }

    def _headers(self, token: str) -> dict:
        return {
            "Authorization": token,
            "Content-Type": "application/json",
        }

    # ===================
    # REQUESTS
    # ===================

    def request(
        self,
        path: str,
        method: str = "POST",
        body: Optional[dict] = None,
    ) -> Any:
        """
        Call the API and return the parsed JSON body.

        429 and 5xx responses (and network failures) are retried on the
        configured backoff schedule. Any other non-2xx fails immediately.

        Raises:
            ConfigError: No usable token
            RemoteError: Non-transient HTTP error
            ExhaustedRetriesError: Every attempt failed transiently
        """
        token = self.resolve_token()
        url = f"{self.config.base_url.rstrip('/')}{path}"
        policy = self.config.retry
        last_status: Optional[int] = None

        for attempt, delay in policy.schedule():
            try:
                return self._send(url, path, method, body, token)
            except TransientRemoteError as e:
                last_status = e.status
                logger.warning(
                    "wb_request_retry",
                    client=self.config.name,
                    path=path,
                    attempt=attempt,
                    status=e.status,
                    delay=delay
                )
                if delay is None:
                    break
                self._sleep(delay)

        logger.error(
            "wb_request_exhausted",
            client=self.config.name,
            path=path,
            attempts=policy.attempts,
            last_status=last_status
        )
        raise ExhaustedRetriesError(path, policy.attempts, last_status)

    def _send(
        self,
        url: str,
        path: str,
        method: str,
        body: Optional[dict],
        token: str,
    ) -> Any:
        """One HTTP round trip. Transient failures raise TransientRemoteError."""
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(token),
                json=(body or {}) if method.upper() == "POST" else None,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransientRemoteError(path, None, str(e)) from e

        status = response.status_code
        if 200 <= status < 300:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise MarketplaceError(
                    code="WB_INVALID_JSON",
                    message=f"[{path}] response is not JSON",
                    details={"path": path, "status": status}
                ) from e

        text = response.text or response.reason or ""
        if status == 429 or status >= 500:
            raise TransientRemoteError(path, status, text)

        logger.error(
            "wb_request_rejected",
            client=self.config.name,
            path=path,
            status=status
        )
        raise RemoteError(path, status, text)

    def request_raw(self, path: str, body: Optional[dict] = None) -> dict:
        """
        Single POST without retry, for diagnostics.

        Returns status, content type, the first 2000 characters of the
        body and the parsed JSON when the body is JSON.
        """
        token = self.resolve_token()
        url = f"{self.config.base_url.rstrip('/')}{path}"
        response = self.session.request(
            "POST",
            url,
            headers=self._headers(token),
            json=body or {},
            timeout=self.config.timeout,
        )
        text = response.text or ""
        try:
            parsed = response.json() if text else None
        except ValueError:
            parsed = None
        return {
            "ok": 200 <= response.status_code < 300,
            "status": response.status_code,
            "contentType": response.headers.get("content-type"),
            "text": text[:2000],
            "json": parsed,
        }


# ===================
# FACTORIES
# ===================

def get_content_client(settings: Settings) -> WildberriesClient:
    """Client for the catalog (content) API."""
    return WildberriesClient(WildberriesConfig.content(settings))


def get_supplies_client(settings: Settings) -> WildberriesClient:
    """Client for the supplies API."""
    return WildberriesClient(WildberriesConfig.supplies(settings))
