from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class IdKind(str, Enum):
    GA4 = 'GA4'
    GTM = 'GTM'
    UA = 'UA'


@dataclass(frozen=True)
class TrackingIdentifier:
    kind: IdKind
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass
class ScriptReference:
    """A ``<script src>`` resolved against the page origin"""
    src: str
    url: str
    hostname: str
    same_root: bool = False
    loader_like: bool = False
    reasons: List[str] = None

    def __post_init__(self):
        if self.reasons is None:
            self.reasons = []


class DecodeStatus(str, Enum):
    DECODED = 'decoded'
    NO_MATCH = 'no_match'
    IGNORED = 'ignored'


@dataclass
class DecodeOutcome:
    """Result of trying one base64-looking run of the page"""
    candidate: str
    status: DecodeStatus
    gtm_ids: List[str] = None
    reason: Optional[str] = None

    def __post_init__(self):
        if self.gtm_ids is None:
            self.gtm_ids = []


class ScanStatus(str, Enum):
    SCANNED = 'scanned'
    SERVER_SIDE = 'server_side'
    FAILED = 'failed'


@dataclass
class ContainerScan:
    """Result of inspecting one GTM container script"""
    gtm_id: str
    status: ScanStatus
    ga4_ids: List[str] = None
    ua_ids: List[str] = None
    signals: List[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.ga4_ids is None:
            self.ga4_ids = []
        if self.ua_ids is None:
            self.ua_ids = []
        if self.signals is None:
            self.signals = []


def _add_unique(target: List[str], values) -> None:
    for value in values:
        if value not in target:
            target.append(value)


@dataclass
class SignalSet:
    """Accumulator for a single analysis run. Never shared between runs."""
    origin: str
    hostname: str
    root_domain: str
    ga4_direct: List[str] = field(default_factory=list)
    gtm_direct: List[str] = field(default_factory=list)
    ua_direct: List[str] = field(default_factory=list)
    gtm_decoded: List[str] = field(default_factory=list)
    ga4_from_containers: List[str] = field(default_factory=list)
    ua_from_containers: List[str] = field(default_factory=list)
    scripts: List[ScriptReference] = field(default_factory=list)
    decode_outcomes: List[DecodeOutcome] = field(default_factory=list)
    container_scans: List[ContainerScan] = field(default_factory=list)
    obfuscated_gtm_found: bool = False
    server_side_signal_found: bool = False

    def add_direct(self, kind: IdKind, values) -> None:
        target = {
            IdKind.GA4: self.ga4_direct,
            IdKind.GTM: self.gtm_direct,
            IdKind.UA: self.ua_direct,
        }[kind]
        _add_unique(target, values)

    def add_decoded_gtm(self, values) -> None:
        _add_unique(self.gtm_decoded, values)

    def add_container_ids(self, scan: ContainerScan) -> None:
        _add_unique(self.ga4_from_containers, scan.ga4_ids)
        _add_unique(self.ua_from_containers, scan.ua_ids)

    @property
    def gtm_ids(self) -> List[str]:
        ids = list(self.gtm_direct)
        _add_unique(ids, self.gtm_decoded)
        return ids

    @property
    def ga4_ids(self) -> List[str]:
        ids = list(self.ga4_direct)
        _add_unique(ids, self.ga4_from_containers)
        return ids

    @property
    def ua_ids(self) -> List[str]:
        ids = list(self.ua_direct)
        _add_unique(ids, self.ua_from_containers)
        return ids

    @property
    def loader_scripts(self) -> List[ScriptReference]:
        return [script for script in self.scripts if script.same_root and script.loader_like]

    def identifiers(self) -> List[TrackingIdentifier]:
        found = [TrackingIdentifier(IdKind.GA4, value) for value in self.ga4_ids]
        found += [TrackingIdentifier(IdKind.GTM, value) for value in self.gtm_ids]
        found += [TrackingIdentifier(IdKind.UA, value) for value in self.ua_ids]
        return found


@dataclass(frozen=True)
class AnalysisResult:
    score: int
    message: str
    details: Mapping[str, Any]

    @property
    def origin(self) -> str:
        return self.details['visited_url']

    @property
    def is_sgtm(self) -> bool:
        return bool(self.details.get('is_sgtm'))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'message': self.message,
            'details': {key: list(value) if isinstance(value, tuple) else value
                        for key, value in self.details.items()},
        }
