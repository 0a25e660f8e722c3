# messyroute/road/ors_client.py
# -*- coding: utf-8 -*-
"""
Concrete ORS HTTP client:
- Composes RoutingMixin
- Centralizes HTTP (session, retries, headers, timeouts)
- Applies rate-limiting and optional caching
- Maps every transport/HTTP failure onto the ProviderError family

Notes
-----
• Infra knobs live in ORSConfig (timeouts, retries, cache path/ttl, UA).
• Mixins call _post which lands in _request:
    - configuration check (once, at the first provider call)
    - (optional) cache lookup
    - rate-limit gate
    - request w/ Retry adapter and (connect, read) timeout
    - JSON decode + error mapping (429→RateLimited, 404/422→NoRoute,
      other non-2xx / network errors→ProviderError)
• The session is shared by the synthesizer's worker threads; requests'
  Session is fine with that for plain request() calls.
"""

from __future__ import annotations

import threading
import time as _time
from typing import Any as _Any, Dict as _Dict, Optional as _Optional

import requests as _req
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from messyroute.infra.logging import get_logger
from .ors_common import (
      _RateLimiter
    , _retry_after_seconds
    , _extract_error_text
    , ORSConfig
    , ProviderError
    , NoRoute
    , RateLimited
    , _Cache
    , _sha_key
)
from .ors_mixins import RoutingMixin

_log = get_logger(__name__)


class ORSClient(RoutingMixin):
    """
    HTTP client for the openrouteservice API.

    Prefer ORSClient(cfg=ORSConfig(...)). A pre-built `session` can be
    injected (tests, custom adapters); it then gets our headers but no adapter.
    """

    def __init__(
        self,
        cfg: ORSConfig | None = None,
        *,
        session: _req.Session | None = None,
    ):
        self.cfg = cfg or ORSConfig()
        self.base_url = self.cfg.base_url

        self._checked = False
        self._check_lock = threading.Lock()
        self._rate_limiter = _RateLimiter(max_calls=self.cfg.rate_limit_per_min, per_seconds=60.0)

        # ────────────────────────────────────────────────────────────────────
        # HTTP session with status retries (timeouts are per-request)
        # ────────────────────────────────────────────────────────────────────
        if session is None:
            session = _req.Session()
            retries = Retry(
                  total=self.cfg.max_retries
                , connect=0                     # let connect timeout govern latency
                , read=min(1, self.cfg.max_retries)
                , backoff_factor=self.cfg.backoff_s
                , status_forcelist=(429, 500, 502, 503, 504)
                , allowed_methods=frozenset(["GET", "POST"])
                , respect_retry_after_header=True
                , raise_on_status=False
            )
            adapter = HTTPAdapter(max_retries=retries)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self._sess = session
        self._sess.headers.update(
            {
                  "Authorization": self.cfg.api_key
                , "User-Agent": self.cfg.user_agent
                , "Accept": "application/json, application/geo+json"
                , "Content-Type": "application/json; charset=utf-8"
            }
        )

        self._cache = _Cache(self.cfg.cache_path, ttl_s=self.cfg.cache_ttl_s) if self.cfg.cache_enabled else None

        _log.debug(
            "ORSClient ready base=%s timeouts=%s retries=%s cache=%s",
              self.base_url
            , self.cfg.timeouts
            , self.cfg.max_retries
            , self.cfg.cache_path if self._cache else "off"
        )

    # ────────────────────────────────────────────────────────────────────────
    # Lifecycle helpers
    # ────────────────────────────────────────────────────────────────────────
    @classmethod
    def from_env(cls) -> "ORSClient":
        """Convenience ctor that pulls ORS_API_KEY from env."""
        return cls(cfg=ORSConfig())

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._sess.close()

    def __enter__(self) -> "ORSClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _ensure_configured(self) -> None:
        # ConfigurationError is raised from here, never wrapped as ProviderError
        if self._checked:
            return
        with self._check_lock:
            if not self._checked:
                self.cfg.validate()
                self._checked = True

    # ────────────────────────────────────────────────────────────────────────
    # Core HTTP layer (used by RoutingMixin)
    # ────────────────────────────────────────────────────────────────────────
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: _Optional[_Dict[str, _Any]] = None,
        json: _Optional[_Dict[str, _Any]] = None,
        cache: bool = True,
    ) -> _Dict[str, _Any]:
        """
        Single entry point for GET/POST:
          1) configuration check
          2) cache check (endpoint+payload hash key)
          3) rate-limit gate
          4) request with retries
          5) map errors; parse JSON; cache store

        Raises
        ------
        ConfigurationError
            Missing API key (first call only).
        RateLimited, NoRoute, ProviderError
            Anything that prevents a usable JSON body.
        """
        self._ensure_configured()

        method_u = method.upper()
        url = f"{self.base_url}{path}"
        payload_for_key = (params if method_u == "GET" else json) or {}
        key = _sha_key(f"{method_u}:{path}", payload_for_key)

        use_cache = cache and self._cache is not None
        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                _log.debug("HTTP %s %s — cache HIT", method_u, path)
                return cached

        self._rate_limiter.wait()

        t0 = _time.time()
        try:
            resp = self._sess.request(
                  method_u
                , url
                , params=params if method_u == "GET" else None
                , json=json if method_u == "POST" else None
                , timeout=self.cfg.timeouts
            )
        except _req.Timeout as e:
            dt_ms = (_time.time() - t0) * 1000.0
            _log.warning("HTTP %s %s — timeout after %.0f ms (limits=%s)", method_u, path, dt_ms, self.cfg.timeouts)
            raise ProviderError(f"Timeout calling {path}: {e}") from e
        except _req.RequestException as e:
            dt_ms = (_time.time() - t0) * 1000.0
            _log.error(
                "HTTP %s %s — request exception %s after %.0f ms",
                  method_u
                , path
                , type(e).__name__
                , dt_ms
            )
            raise ProviderError(f"Request to {path} failed: {e}") from e

        dt_ms = (_time.time() - t0) * 1000.0

        # 429: the adapter already honoured Retry-After on its own retries
        if resp.status_code == 429:
            wait_s = _retry_after_seconds(resp)
            _log.warning("HTTP 429 %s (%.0f ms) — retry-after=%s", path, dt_ms, wait_s)
            raise RateLimited(f"429 from {path}; retry after {wait_s if wait_s is not None else '?'}s")

        if 200 <= resp.status_code < 300:
            try:
                data = resp.json()
            except ValueError as e:
                txt = (resp.text or "")[:200]
                _log.error("HTTP %s %s — invalid JSON (%.0f ms): %s", method_u, path, dt_ms, txt)
                raise ProviderError(f"Invalid JSON from {path}") from e

            _log.info(
                "HTTP %s %s — %s (%.0f ms, %s B)",
                  method_u
                , path
                , resp.status_code
                , dt_ms
                , len(resp.content or b"")
            )

            if use_cache and isinstance(data, dict):
                try:
                    self._cache.set(key, data)
                except Exception:
                    # cache failures never break the request path
                    _log.debug("cache set failed (non-fatal) for key=%s", key[:12], exc_info=True)

            return data

        msg = _extract_error_text(resp)
        if resp.status_code in (404, 422):
            _log.warning(
                "HTTP %s %s — %s (%.0f ms) no-route: %s",
                  method_u
                , path
                , resp.status_code
                , dt_ms
                , msg
            )
            raise NoRoute(f"No route for {path}: {msg}")

        _log.error(
            "HTTP %s %s — %s (%.0f ms) body=%s",
              method_u
            , path
            , resp.status_code
            , dt_ms
            , msg
        )
        raise ProviderError(f"HTTP {resp.status_code} from {path}: {msg}")

    def _post(
        self,
        path: str,
        json: _Optional[_Dict[str, _Any]] = None,
        *,
        cache: bool = True,
    ) -> _Dict[str, _Any]:
        return self._request("POST", path, json=json, cache=cache)


__all__ = ["ORSClient", "ORSConfig"]
