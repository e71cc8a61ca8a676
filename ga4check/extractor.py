import base64
import binascii
import logging
from typing import Dict, List
from urllib.parse import parse_qs, urljoin, urlsplit

from bs4 import BeautifulSoup

from .models import DecodeOutcome, DecodeStatus, IdKind, ScriptReference, SignalSet
from .patterns import CompiledPatterns
from .urls import hostname_of, is_same_root, root_domain


def find_unique(pattern, text: str) -> List[str]:
    """All matches of ``pattern`` in ``text``, deduplicated in discovery order"""
    return list(dict.fromkeys(pattern.findall(text)))


class SignalExtractor:
    """Pure text analysis of the page HTML. Makes no network calls."""

    def __init__(self, patterns: CompiledPatterns = None):
        self.patterns = patterns or CompiledPatterns()
        self.logger = logging.getLogger(__name__)

    def extract(self, html: str, origin: str) -> SignalSet:
        hostname = hostname_of(origin)
        signals = SignalSet(origin=origin, hostname=hostname, root_domain=root_domain(hostname))

        signals.add_direct(IdKind.GA4, find_unique(self.patterns.ga4_measurement_id, html))
        signals.add_direct(IdKind.GTM, find_unique(self.patterns.gtm_container_id, html))
        signals.add_direct(IdKind.UA, find_unique(self.patterns.ua_tracking_id, html))

        if not signals.gtm_direct:
            for outcome in self.decode_candidates(html):
                signals.decode_outcomes.append(outcome)
                if outcome.status == DecodeStatus.DECODED:
                    signals.add_decoded_gtm(outcome.gtm_ids)
            if signals.gtm_decoded:
                signals.obfuscated_gtm_found = True
                self.logger.info(f"Recovered obfuscated GTM id(s) {signals.gtm_decoded} on {origin}")

        signals.scripts = self.classify_scripts(self.extract_scripts(html), origin, signals.root_domain)
        return signals

    def decode_candidate(self, candidate: str) -> DecodeOutcome:
        """Try one base64-looking run. Decode errors are benign, not failures."""
        padded = candidate + '=' * (-len(candidate) % 4)
        try:
            decoded = base64.b64decode(padded, validate=True).decode('latin-1')
        except (binascii.Error, ValueError) as e:
            self.logger.debug(f"Ignoring non-base64 run {candidate[:24]!r}: {e}")
            return DecodeOutcome(candidate, DecodeStatus.IGNORED, reason=str(e))

        gtm_ids = find_unique(self.patterns.gtm_container_id, decoded)
        if gtm_ids:
            return DecodeOutcome(candidate, DecodeStatus.DECODED, gtm_ids=gtm_ids)
        return DecodeOutcome(candidate, DecodeStatus.NO_MATCH)

    def decode_candidates(self, html: str) -> List[DecodeOutcome]:
        return [self.decode_candidate(candidate)
                for candidate in find_unique(self.patterns.base64_candidate, html)]

    def extract_scripts(self, html_content: str) -> List[Dict]:
        """Extract script elements from HTML"""
        soup = BeautifulSoup(html_content, 'html.parser')
        return [{'src': (script.get('src') or '').strip()} for script in soup.find_all('script')]

    def loader_reasons(self, url: str) -> List[str]:
        """Which loader conventions a first-party script URL follows"""
        parts = urlsplit(url)
        reasons = []

        params = set(parse_qs(parts.query, keep_blank_values=True))
        matched = sorted(params & self.patterns.loader_query_params)
        if matched:
            reasons.append('query parameter ' + ', '.join(matched))

        segments = [segment for segment in parts.path.split('/') if segment]
        if any(self.patterns.loader_path_segment.search(segment) for segment in segments):
            reasons.append('gtm path segment')

        if self.patterns.loader_filename.search(parts.path):
            reasons.append('hashed filename')
        return reasons

    def classify_scripts(self, scripts: List[Dict], origin: str, root: str) -> List[ScriptReference]:
        references = []
        for script in scripts:
            src = script.get('src')
            if not src:
                continue
            try:
                url = urljoin(origin + '/', src)
                hostname = urlsplit(url).hostname or ''
            except ValueError:
                self.logger.debug(f"Skipping unparsable script src {src!r}")
                continue

            reference = ScriptReference(src=src, url=url, hostname=hostname)
            reference.same_root = is_same_root(hostname, root)
            if reference.same_root:
                reference.reasons = self.loader_reasons(url)
                reference.loader_like = bool(reference.reasons)
            references.append(reference)
        return references
