"""
Low-level DAM HTTP client: bearer auth / throttling / 429 backoff
  - permanent token sent as Bearer on every call
  - X req/min pacing shared by every thread using the client (send slots reserved under a lock),
    optional Redis token bucket shared by all workers
  - one requests.Session per thread unless a session is injected
  - 429 retried with exponential backoff + jitter, every other failure surfaces immediately
    (retrying those is the Retry Engine's job, not the transport's)
  - get_json/post_json/delete/download, no knowledge of payload fields
"""

from __future__ import annotations
import logging, random, threading, time, requests
from typing import Any, Callable, Dict, Optional
from urllib.parse import urljoin

from asset_sync.core.config import settings
from asset_sync.integrations.dam.errors import (
    DAMAuthError, DAMClientError, DAMNotFoundError, DAMNetworkError,
    DAMServerError, DAMRateLimitError, DAMPayloadError,
)
from asset_sync.infrastructure.ratelimit.redis_token_bucket import RedisTokenBucketLimiter

logger = logging.getLogger(__name__)


# called as on_rate_limit(path, attempt) on every 429 so callers can emit metrics
RateLimitHook = Callable[[str, int], None]


class DAMHttpClient:
    """Bearer-token HTTP client for one DAM portal."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        permanent_token: Optional[str] = None,
        connect_timeout: Optional[int] = None,
        read_timeout: Optional[int] = None,
        rate_limit_per_min: Optional[int] = None,
        max_attempts: Optional[int] = None,
        session: Optional[requests.Session] = None,
        on_rate_limit: Optional[RateLimitHook] = None,
        use_global_limiter: bool = True,
    ) -> None:
        base = base_url or settings.DAM_BASE_URL
        if not base:
            raise ValueError("DAM base URL is not configured")
        self.portal_url = _portal_url(base)
        self.base_url = self.portal_url + "/api/"

        token = permanent_token
        if token is None and settings.DAM_PERMANENT_TOKEN is not None:
            token = settings.DAM_PERMANENT_TOKEN.get_secret_value()
        self.permanent_token = token

        self.connect_timeout = connect_timeout or settings.DAM_CONNECT_TIMEOUT
        self.read_timeout = read_timeout or settings.DAM_READ_TIMEOUT
        self.rate_limit_per_min = rate_limit_per_min or settings.DAM_RATE_LIMIT_PER_MIN
        self.max_attempts = max(1, max_attempts or settings.DAM_HTTP_RETRIES)
        self.on_rate_limit = on_rate_limit

        self._shared_session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._lock = threading.Lock()
        self._next_slot: float = 0.0
        self._global_limiter = (
            RedisTokenBucketLimiter.from_settings(vendor="dam", account=self.portal_url)
            if use_global_limiter else None
        )


    # ---------- Public ----------
    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        resp = self._request("GET", path, params=params, **kwargs)
        return self._as_json(resp)

    def post_json(self, path: str, json_body: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        resp = self._request("POST", path, json=json_body, **kwargs)
        return self._as_json(resp)

    def delete(self, path: str, **kwargs) -> None:
        self._request("DELETE", path, **kwargs)

    def get_raw(self, url: str, *, authenticated: bool = True, timeout: Optional[int] = None) -> requests.Response:
        """GET an absolute URL (download links, S3 redirects). Same status handling as API calls."""
        return self._request(
            "GET", url,
            authenticated=authenticated,
            timeout=(self.connect_timeout, timeout or settings.DAM_DOWNLOAD_TIMEOUT),
        )

    def close(self) -> None:
        if self._shared_session is not None:
            self._shared_session.close()
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for s in sessions:
            s.close()


    # ---------- Internals ----------
    def _as_json(self, resp: requests.Response) -> Any:
        """Parse JSON or raise DAMPayloadError with a truncated body."""
        if resp.status_code == 204 or not resp.content:
            return None
        ctype = (resp.headers.get("Content-Type") or "").lower()
        if "application/json" not in ctype:
            logger.warning("dam.http.non_json content_type=%s", ctype)
        try:
            return resp.json()
        except ValueError as e:
            text = (resp.text or "")[:500]
            raise DAMPayloadError(f"non-JSON response (status={resp.status_code}): {text}") from e


    def _request(self, method: str, path: str, *, authenticated: bool = True, **kwargs) -> requests.Response:
        url = path if path.startswith(("http://", "https://")) else urljoin(self.base_url, path.lstrip("/"))
        headers = kwargs.pop("headers", {}) or {}
        headers.setdefault("Accept", "application/json")
        if authenticated:
            if not self.permanent_token:
                raise DAMAuthError("DAM permanent token is not configured")
            headers["Authorization"] = f"Bearer {self.permanent_token}"

        timeout = kwargs.pop("timeout", (self.connect_timeout, self.read_timeout))

        for attempt in range(1, self.max_attempts + 1):
            self._respect_rate_limit()
            try:
                resp = self._http().request(method, url, headers=headers, timeout=timeout, **kwargs)
            except requests.Timeout as e:
                raise DAMNetworkError(f"timeout calling {method} {path}: {e}") from e
            except requests.RequestException as e:
                raise DAMNetworkError(f"network error calling {method} {path}: {e}") from e

            status = resp.status_code
            logger.debug("dam.http %s %s -> %s attempt=%s", method, path, status, attempt)

            if status == 429:
                retry_after = _retry_after_seconds(resp)
                if self.on_rate_limit is not None:
                    try:
                        self.on_rate_limit(path, attempt)
                    except Exception:
                        logger.warning("dam.http.rate_limit_hook_failed path=%s", path, exc_info=True)
                if attempt == self.max_attempts:
                    raise DAMRateLimitError(f"429 rate limit exceeded after {attempt} attempts: {path}",
                                            retry_after=retry_after)
                sleep_s = self._sleep_backoff(attempt, retry_after)
                logger.warning("dam.http.429 path=%s attempt=%s/%s sleep=%.2fs",
                               path, attempt, self.max_attempts, sleep_s)
                continue

            if status >= 500:
                raise DAMServerError(f"{status} server error: {(resp.text or '')[:300]}", status_code=status)
            if status in (401, 403):
                raise DAMAuthError(f"{status} unauthorized: {(resp.text or '')[:300]}", status_code=status)
            if status == 404:
                raise DAMNotFoundError(f"404 not found: {path}", status_code=404)
            if 400 <= status < 500:
                raise DAMClientError(f"{status} client error: {(resp.text or '')[:300]}", status_code=status)

            return resp

        # the loop always returns or raises
        raise DAMClientError("unreachable retry loop")


    # ---------- Helpers ----------
    def _respect_rate_limit(self) -> None:
        """Redis token bucket first; fall back to process-local pacing."""
        limiter = self._global_limiter
        if limiter is not None:
            try:
                for _ in range(20):
                    allowed, wait_ms = limiter.acquire_once()
                    if allowed:
                        return
                    time.sleep(max(0.001, (wait_ms or 1000) / 1000.0))
                time.sleep(1.0)
            except Exception as e:
                logger.warning("dam.http.global_rl_disabled err=%s; falling back to process-local.", e)
                self._global_limiter = None

        # --- process-local pacing ---
        if not self.rate_limit_per_min or self.rate_limit_per_min <= 0:
            return
        interval = 60.0 / float(self.rate_limit_per_min)
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + interval
        if slot > now:
            time.sleep(slot - now)


    def _http(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session


    # 2s, 4s, 8s ... capped at 60s, plus 0~25% jitter; Retry-After wins when larger
    def _sleep_backoff(self, attempt: int, retry_after: Optional[float] = None) -> float:
        base = min(2 ** attempt, 60)
        sleep_s = base + random.uniform(0, 0.25 * base)
        if retry_after is not None:
            sleep_s = max(sleep_s, retry_after)
        time.sleep(sleep_s)
        return sleep_s


def _portal_url(base_url: str) -> str:
    """'https://x.bynder.com/api/' -> 'https://x.bynder.com'"""
    url = base_url.strip().rstrip("/")
    if url.endswith("/api"):
        url = url[: -len("/api")]
    return url


def _retry_after_seconds(resp: requests.Response) -> Optional[float]:
    value = resp.headers.get("Retry-After")
    try:
        return max(0.0, float(value)) if value is not None else None
    except (TypeError, ValueError):
        return None
