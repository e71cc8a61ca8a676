import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .fetcher import DEFAULT_USER_AGENT, RetryConfig
from .messages import DEFAULT_LOCALE
from .scorer import ScoringPolicy


@dataclass
class DetectorConfig:
    page_timeout: float = 10
    container_timeout: float = 5
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = 'ja,en-US;q=0.9,en;q=0.8'
    container_url_template: str = 'https://www.googletagmanager.com/gtm.js?id={gtm_id}'
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    locale: str = DEFAULT_LOCALE
    scoring_policy: ScoringPolicy = field(default_factory=ScoringPolicy)
    max_workers: int = 2


_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


@dataclass
class CacheConfig:
    """Settings for the analysis log consulted around the engine"""
    path: str = 'ga4check_log.csv'
    enabled: bool = True
    # Query-string style bypass from older deployments ("cache=clear").
    # Off unless set; the explicit bypass flag is the supported switch.
    legacy_bypass_token: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> 'CacheConfig':
        environ = os.environ if environ is None else environ
        config = cls()
        if environ.get('GA4CHECK_CACHE_PATH', '').strip():
            config.path = environ['GA4CHECK_CACHE_PATH'].strip()
        if 'GA4CHECK_CACHE_ENABLED' in environ:
            config.enabled = environ['GA4CHECK_CACHE_ENABLED'].strip().lower() in _TRUE_VALUES
        token = environ.get('GA4CHECK_LEGACY_BYPASS_TOKEN', '').strip()
        if token:
            config.legacy_bypass_token = token
        return config
