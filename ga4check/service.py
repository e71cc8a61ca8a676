import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .cache_store import CacheRecord, CacheStore, CsvCacheStore, now_timestamp
from .config import CacheConfig
from .detector import Ga4Checker
from .errors import AnalysisError, FetchError, FetchFailed, Forbidden, InvalidURL
from .messages import get_message
from .urls import normalize_url

SCORES = (2, 3, 4)


@dataclass
class CheckResponse:
    """What the caller hands back to a client: a status and a JSON body"""
    status: int
    body: Dict[str, Any]
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.status == 200


class CachedChecker:
    """Wraps the engine with the analysis log: lookup, analyse, append"""

    def __init__(self, checker: Ga4Checker = None, store: Optional[CacheStore] = None,
                 config: CacheConfig = None):
        self.checker = checker or Ga4Checker()
        self.config = config or CacheConfig(enabled=store is not None)
        if store is None and self.config.enabled:
            store = CsvCacheStore(self.config.path)
        self.store = store if self.config.enabled else None
        self.logger = logging.getLogger(__name__)

    @property
    def locale(self) -> str:
        return self.checker.config.locale

    def wants_bypass(self, raw_url: str, bypass_cache: bool) -> bool:
        if bypass_cache:
            return True
        token = self.config.legacy_bypass_token
        if token and token in raw_url:
            self.logger.warning(f"Cache bypassed by legacy token {token!r} in input")
            return True
        return False

    def lookup(self, origin: str) -> Optional[CacheRecord]:
        try:
            record = self.store.lookup(origin)
        except (OSError, ValueError) as e:
            self.logger.error(f"Cache check failed: {e}")
            return None
        # Failure logs (score 0) are history, not answers
        if record is None or record.score not in SCORES:
            return None
        return record

    def append(self, record: CacheRecord) -> None:
        try:
            self.store.append(record)
        except OSError as e:
            self.logger.error(f"Cache logging error: {e}")

    def check(self, raw_url: str, bypass_cache: bool = False) -> CheckResponse:
        if not raw_url or not raw_url.strip():
            return CheckResponse(400, {'message': get_message('url_required', self.locale)})

        try:
            origin = normalize_url(raw_url)
        except InvalidURL:
            return CheckResponse(400, {'message': get_message('invalid_url', self.locale)})

        if self.store is not None and not self.wants_bypass(raw_url, bypass_cache):
            cached = self.lookup(origin)
            if cached is not None:
                self.logger.info(f"Cache hit for: {origin}")
                details = dict(cached.details)
                details['visited_url'] = cached.origin
                return CheckResponse(200, {'score': cached.score, 'message': cached.message,
                                           'details': details}, cached=True)
            self.logger.info(f"Cache miss for: {origin}")

        try:
            result = self.checker.analyze(origin)
        except Forbidden:
            message = get_message('forbidden', self.locale)
            if self.store is not None:
                self.append(CacheRecord(now_timestamp(), origin, 0, message,
                                        {'error': '403 Forbidden', 'is_sgtm': False}))
            return CheckResponse(403, {'message': message})
        except AnalysisError as e:
            return CheckResponse(e.http_status, {'message': self.describe_error(e)})

        if self.store is not None:
            self.append(CacheRecord(now_timestamp(), origin, result.score, result.message,
                                    {key: value for key, value in result.details.items()
                                     if key != 'visited_url'}))
        return CheckResponse(200, result.to_dict())

    def describe_error(self, error: AnalysisError) -> str:
        if isinstance(error, FetchFailed):
            return get_message('fetch_failed', self.locale,
                               reason=f'HTTP {error.status_code} {error.reason or ""}'.rstrip())
        if isinstance(error, FetchError):
            return get_message('fetch_error', self.locale, reason=error.cause)
        return str(error)
