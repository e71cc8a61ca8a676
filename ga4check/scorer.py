from dataclasses import dataclass
from typing import List, Tuple

from .messages import DEFAULT_LOCALE, get_message
from .models import SignalSet


@dataclass
class ScoringPolicy:
    # A GTM id hidden in base64 is read as a custom loader. Minified bundles
    # can produce the same artefact, so this stays switchable.
    obfuscated_gtm_implies_server_side: bool = True
    loader_script_fallback: bool = True


class Scorer:
    """Maps a finished SignalSet onto the 2-4 maturity scale"""

    def __init__(self, policy: ScoringPolicy = None, locale: str = DEFAULT_LOCALE):
        self.policy = policy or ScoringPolicy()
        self.locale = locale

    def advanced_reasons(self, signals: SignalSet) -> List[str]:
        reasons = []
        if signals.server_side_signal_found:
            reasons.append('server_side_signal')
        if signals.obfuscated_gtm_found and self.policy.obfuscated_gtm_implies_server_side:
            reasons.append('obfuscated_gtm')
        if (self.policy.loader_script_fallback
                and not signals.ga4_direct and not signals.gtm_direct
                and signals.loader_scripts):
            reasons.append('loader_script')
        return reasons

    def score(self, signals: SignalSet) -> int:
        if self.advanced_reasons(signals):
            return 4
        if signals.ga4_ids or signals.gtm_ids:
            return 3
        return 2

    def message(self, score: int, has_ua: bool) -> str:
        message = get_message(f'score_{score}', self.locale)
        if has_ua:
            message += '\n' + get_message('ua_warning', self.locale)
        return message

    def evaluate(self, signals: SignalSet) -> Tuple[int, str]:
        score = self.score(signals)
        return score, self.message(score, bool(signals.ua_ids))
