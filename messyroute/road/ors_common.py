# messyroute/road/ors_common.py
# -*- coding: utf-8 -*-
"""
Common pieces for the ORS client stack:
- Error classes (ProviderError family, ConfigurationError)
- Sliding-window rate limiter shared by concurrent segment fetches
- Lightweight SQLite cache (keyed by endpoint+payload hash)
- Helpers for Retry-After and response error extraction
- ORSConfig (API key, base URL, timeouts, retries, cache settings)

This module does not perform HTTP calls; that lives in
messyroute/road/ors_client.py. No init_logging here.
"""

from __future__ import annotations

import os
import time
import json
import hashlib
import sqlite3
import threading
from typing import Any, Dict, Tuple, Optional
from datetime import datetime, timezone

from messyroute.infra.logging import get_logger

# ────────────────────────────────────────────────────────────────────────────────
# Errors
# ────────────────────────────────────────────────────────────────────────────────

class ProviderError(Exception):
    """The routing provider could not deliver a usable route for one request."""


class NoRoute(ProviderError):
    """ORS reported that no route could be found (404/422) or returned no routes."""


class RateLimited(ProviderError):
    """ORS answered 429 after the adapter's own retries."""


class ConfigurationError(RuntimeError):
    """Missing or invalid provider configuration (e.g. ORS_API_KEY not set)."""


# ────────────────────────────────────────────────────────────────────────────────
# Logging
# ────────────────────────────────────────────────────────────────────────────────

_log = get_logger(__name__)

def _short(v: Any, maxlen: int = 420) -> str:
    """Concise preview of a Python object for logs."""
    try:
        s = json.dumps(v, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        s = str(v)
    return s if len(s) <= maxlen else (s[:maxlen] + " …")


# ────────────────────────────────────────────────────────────────────────────────
# Rate limiter
# ────────────────────────────────────────────────────────────────────────────────

class _RateLimiter:
    """
    Sliding-window rate limiter, safe to share between worker threads.
    The ORS free tier allows 40 directions calls/min; default stays under it.
    """
    def __init__(self, max_calls: int = 35, per_seconds: float = 60.0) -> None:
        self.max_calls = int(max_calls)
        self.per = float(per_seconds)
        self.ts: list[float] = []
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Block just long enough to fall below the window threshold."""
        with self._lock:
            now = time.time()
            self.ts = [t for t in self.ts if (now - t) < self.per]
            if len(self.ts) >= self.max_calls:
                sleep_s = self.per - (now - self.ts[0]) + 0.05
                if sleep_s > 0:
                    _log.debug(
                        "rate-limit: window=%ss max_calls=%s current=%s → sleeping %.3fs",
                        self.per, self.max_calls, len(self.ts), sleep_s
                    )
                    time.sleep(sleep_s)
            self.ts.append(time.time())


# ────────────────────────────────────────────────────────────────────────────────
# Retry-After helper (RFC 7231)
# ────────────────────────────────────────────────────────────────────────────────

def _retry_after_seconds(resp) -> Optional[float]:
    """
    Extract Retry-After header as seconds.
    Supports delta-seconds or HTTP-date. Returns None if absent/unparsable.
    """
    ra = getattr(resp, "headers", {}).get("Retry-After")
    if not ra:
        return None
    try:
        return float(ra)
    except (ValueError, TypeError):
        pass
    try:
        # e.g. 'Wed, 21 Oct 2015 07:28:00 GMT'
        dt = datetime.strptime(ra, "%a, %d %b %Y %H:%M:%S %Z").replace(tzinfo=timezone.utc)
        now = datetime.now(timezone.utc)
        return max(0.0, (dt - now).total_seconds())
    except ValueError:
        return None


# ────────────────────────────────────────────────────────────────────────────────
# Cache (SQLite)
# ────────────────────────────────────────────────────────────────────────────────

class _Cache:
    """
    Very small key/value cache backed by SQLite.
    Keys are opaque hashes (see _sha_key), values are JSON blobs.
    TTL is enforced on read; expired entries are treated as misses.
    One connection per operation, so worker threads never share a handle.
    """
    def __init__(self, path: str, ttl_s: int) -> None:
        self._path = path
        self._ttl = int(ttl_s)
        self._ensure()

    def _ensure(self) -> None:
        parent = os.path.dirname(self._path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        con = sqlite3.connect(self._path)
        try:
            with con:
                con.execute("""
                    CREATE TABLE IF NOT EXISTS cache (
                          k  TEXT PRIMARY KEY
                        , v  BLOB NOT NULL
                        , ts INTEGER NOT NULL
                    )
                """)
        finally:
            con.close()
        _log.debug("cache: ensured db at %s (ttl_s=%s)", self._path, self._ttl)

    def get(self, k: str) -> Optional[Dict[str, Any]]:
        con = sqlite3.connect(self._path)
        try:
            row = con.execute("SELECT v, ts FROM cache WHERE k = ?", (k,)).fetchone()
            if not row:
                _log.debug("cache: MISS key=%s", k[:12])
                return None
            v_raw, ts = row
            age = int(time.time()) - int(ts)
            if age > self._ttl:
                _log.debug("cache: EXPIRED key=%s age=%ss ttl=%ss", k[:12], age, self._ttl)
                return None
            try:
                val = json.loads(v_raw)
            except ValueError:
                _log.debug("cache: CORRUPT JSON key=%s", k[:12])
                return None
            _log.debug("cache: HIT key=%s age=%ss", k[:12], age)
            return val
        finally:
            con.close()

    def set(self, k: str, v: Dict[str, Any]) -> None:
        con = sqlite3.connect(self._path)
        try:
            payload = json.dumps(v, ensure_ascii=False)
            with con:
                con.execute(
                    "INSERT OR REPLACE INTO cache(k,v,ts) VALUES (?,?,?)",
                    (k, payload, int(time.time())),
                )
            _log.debug("cache: SET key=%s size=%sB", k[:12], len(payload.encode("utf-8")))
        finally:
            con.close()


# ────────────────────────────────────────────────────────────────────────────────
# Small utils
# ────────────────────────────────────────────────────────────────────────────────

def _sha_key(endpoint: str, payload: Dict[str, Any]) -> str:
    """
    Stable key for (endpoint, payload). Payload is dumped with sort_keys=True
    so key order doesn't affect the hash.
    """
    msg = endpoint + "||" + json.dumps(payload, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(msg.encode("utf-8")).hexdigest()

def _extract_error_text(resp) -> str:
    """Best-effort human-friendly error from an HTTP response."""
    try:
        j = resp.json()
    except ValueError:
        return (getattr(resp, "text", "") or "")[:500] or "<no-text>"
    if isinstance(j, dict):
        # ORS: {"error": {"code": 2010, "message": "..."}} or {"error": "..."}
        err = j.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
        return _short(j)
    return str(j)


# ────────────────────────────────────────────────────────────────────────────────
# Config
# ────────────────────────────────────────────────────────────────────────────────

class ORSConfig:
    """
    Configuration bundle for the ORS client.

    Parameters
    ----------
    api_key : str | None
        If None, reads from env ORS_API_KEY. Validated lazily, see validate().
    base_url : str
        ORS base URL (no trailing slash).
    connect_timeout_s : float
        TCP connect timeout (seconds).
    read_timeout_s : float
        Response/read timeout (seconds); the per-segment fetch timeout.
    max_retries : int
        Adapter retries for transient statuses (429/5xx).
    backoff_s : float
        Backoff factor for the adapter retries.
    cache_enabled : bool
        Whether directions responses are cached in SQLite.
    cache_path : str
        SQLite cache path (created if missing).
    cache_ttl_s : int
        Cache TTL in seconds (default 30 days).
    user_agent : str
        Sent as User-Agent.
    rate_limit_per_min : int
        Max calls per rolling minute across all workers.
    """
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.openrouteservice.org",
        connect_timeout_s: float = 8.0,
        read_timeout_s: float = 30.0,
        max_retries: int = 2,
        backoff_s: float = 0.5,
        cache_enabled: bool = False,
        cache_path: str = ".cache/ors_cache.sqlite",
        cache_ttl_s: int = 30 * 24 * 3600,
        user_agent: str = "messy-route/0.1",
        rate_limit_per_min: int = 35,
    ) -> None:
        self.api_key = (api_key or os.getenv("ORS_API_KEY", "")).strip()
        self.base_url = base_url.rstrip("/")
        self.connect_timeout_s = float(connect_timeout_s)
        self.read_timeout_s = float(read_timeout_s)
        self.max_retries = int(max_retries)
        self.backoff_s = float(backoff_s)
        self.cache_enabled = bool(cache_enabled)
        self.cache_path = os.path.abspath(os.path.expanduser(cache_path))
        self.cache_ttl_s = int(cache_ttl_s)
        self.user_agent = str(user_agent)
        self.rate_limit_per_min = int(rate_limit_per_min)

        _log.debug(
            "ORSConfig init: base_url=%s timeouts=(%.1f,%.1f)s retries=%s backoff=%.2fs "
            "cache=%s path=%s ttl=%ss rate=%s/min key_set=%s",
            self.base_url,
            self.connect_timeout_s,
            self.read_timeout_s,
            self.max_retries,
            self.backoff_s,
            self.cache_enabled,
            self.cache_path,
            self.cache_ttl_s,
            self.rate_limit_per_min,
            bool(self.api_key),
        )

    def validate(self) -> None:
        """
        Raise ConfigurationError if the configuration can't produce a valid request.
        """
        if not self.api_key:
            _log.error("ORSConfig: ORS_API_KEY not set")
            raise ConfigurationError(
                "ORS_API_KEY not set. Export ORS_API_KEY or pass api_key= to ORSConfig()."
            )
        if self.connect_timeout_s <= 0 or self.read_timeout_s <= 0:
            raise ConfigurationError(
                f"Timeouts must be positive, got ({self.connect_timeout_s}, {self.read_timeout_s})"
            )

    @property
    def timeouts(self) -> Tuple[float, float]:
        """Return (connect_timeout_s, read_timeout_s) for requests."""
        return (self.connect_timeout_s, self.read_timeout_s)
