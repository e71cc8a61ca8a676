"""Static detection of GA4 / GTM / UA / server-side tagging with a 2-4 maturity score."""
from .config import CacheConfig, DetectorConfig
from .detector import Ga4Checker
from .errors import AnalysisError, FetchError, FetchFailed, Forbidden, InvalidURL
from .models import AnalysisResult, IdKind, SignalSet, TrackingIdentifier
from .scorer import ScoringPolicy
from .urls import normalize_url

__version__ = '1.0.0'

__all__ = [
    'AnalysisError', 'AnalysisResult', 'CacheConfig', 'DetectorConfig', 'FetchError',
    'FetchFailed', 'Forbidden', 'Ga4Checker', 'IdKind', 'InvalidURL', 'ScoringPolicy',
    'SignalSet', 'TrackingIdentifier', 'normalize_url',
]
