"""Sliding-window rate limiting kept in process memory."""

import time
from dataclasses import dataclass, field
import logging

from fastapi import Request

from app.core.config import settings
from app.core.exceptions import RateLimited
from app.core.logger import scrub_path


logger = logging.getLogger("giftlink.rate_limit")

MAX_ENTRIES = 10000
CLEANUP_INTERVAL = 100


@dataclass
class RateLimitEntry:
    timestamps: list[float] = field(default_factory=list)
    last_access: float = field(default_factory=time.time)


class InMemoryRateLimiter:
    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._request_count = 0

    def _drop_stale_entries(self, max_age_seconds: int) -> None:
        cutoff = time.time() - max_age_seconds
        stale_keys = [
            key for key, entry in self._entries.items()
            if entry.last_access < cutoff
        ]
        for key in stale_keys:
            del self._entries[key]
        if stale_keys:
            logger.debug("Cleaned up %d stale rate limit entries", len(stale_keys))

    def _enforce_max_entries(self) -> None:
        if len(self._entries) <= MAX_ENTRIES:
            return
        oldest_first = sorted(self._entries.items(), key=lambda kv: kv[1].last_access)
        overflow = len(self._entries) - MAX_ENTRIES + 100
        for key, _ in oldest_first[:overflow]:
            del self._entries[key]
        logger.warning("Rate limit entries exceeded %d, removed %d oldest", MAX_ENTRIES, overflow)

    def is_allowed(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Returns (allowed, retry_after_seconds)."""
        now = time.time()
        entry = self._entries.setdefault(key, RateLimitEntry())
        entry.last_access = now

        cutoff = now - window_seconds
        entry.timestamps = [ts for ts in entry.timestamps if ts > cutoff]

        if len(entry.timestamps) >= max_requests:
            retry_after = int(entry.timestamps[0] + window_seconds - now) + 1
            return False, max(1, retry_after)

        entry.timestamps.append(now)
        self._request_count += 1
        if self._request_count % CLEANUP_INTERVAL == 0:
            self._drop_stale_entries(window_seconds * 2)
            self._enforce_max_entries()
        return True, 0

    def reset(self) -> None:
        self._entries.clear()
        self._request_count = 0


limiter = InMemoryRateLimiter()


def get_client_identifier(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    if request.client:
        return f"ip:{request.client.host}"
    return f"ua:{request.headers.get('User-Agent', '')}"


def check_rate_limit(
    request: Request,
    max_requests: int,
    window_seconds: int | None = None,
    key_suffix: str = "",
) -> None:
    """Raise RateLimited once the caller exceeds ``max_requests`` on this path."""
    if not settings.rate_limit_enabled:
        return

    client_id = get_client_identifier(request)
    key = f"{client_id}:{request.url.path}:{key_suffix}"
    allowed, retry_after = limiter.is_allowed(
        key,
        max_requests,
        window_seconds or settings.rate_limit_window_seconds,
    )
    if not allowed:
        logger.warning(
            "Rate limit exceeded for %s on %s, retry_after=%ds",
            client_id,
            scrub_path(request.url.path),
            retry_after,
        )
        raise RateLimited(retry_after)
