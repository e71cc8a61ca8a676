import csv
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from types import MappingProxyType
from typing import Any, Dict, List, Optional

import requests

from .config import DetectorConfig
from .container import ContainerScanner
from .errors import AnalysisError
from .extractor import SignalExtractor
from .fetcher import PageFetcher
from .models import AnalysisResult, SignalSet
from .patterns import CompiledPatterns
from .scorer import Scorer
from .urls import normalize_url


class Ga4Checker:
    """Runs the detection pipeline: normalize, fetch, extract, deep-scan, score"""

    def __init__(self, config: DetectorConfig = None, session: Optional[requests.Session] = None):
        self.config = config or DetectorConfig()
        self.session = session
        self.patterns = CompiledPatterns()
        self.extractor = SignalExtractor(self.patterns)
        self.scorer = Scorer(self.config.scoring_policy, self.config.locale)
        self.logger = logging.getLogger(__name__)

    def make_fetcher(self, session: requests.Session) -> PageFetcher:
        return PageFetcher(
            session=session,
            page_timeout=self.config.page_timeout,
            container_timeout=self.config.container_timeout,
            user_agent=self.config.user_agent,
            accept_language=self.config.accept_language,
            container_url_template=self.config.container_url_template,
            retry_config=self.config.retry_config,
        )

    def collect_signals(self, origin: str, fetcher: PageFetcher) -> SignalSet:
        html = fetcher.fetch_page(origin)
        signals = self.extractor.extract(html, origin)
        return ContainerScanner(fetcher, self.patterns).scan(signals)

    def assemble(self, signals: SignalSet, score: int, message: str) -> AnalysisResult:
        ga4_ids = signals.ga4_ids
        gtm_ids = signals.gtm_ids
        ua_ids = signals.ua_ids
        details = {
            'has_ga4_direct': bool(signals.ga4_direct),
            'has_ga4_gtm': bool(signals.ga4_from_containers),
            'has_gtm': bool(gtm_ids),
            'has_ua': bool(ua_ids),
            'ga4_id': ga4_ids[0] if ga4_ids else None,
            'gtm_id': gtm_ids[0] if gtm_ids else None,
            'ua_id': ua_ids[0] if ua_ids else None,
            'is_sgtm': signals.server_side_signal_found,
            'obfuscated_gtm': signals.obfuscated_gtm_found,
            'loader_script': bool(signals.loader_scripts),
            'ga4_ids': tuple(ga4_ids),
            'gtm_ids': tuple(gtm_ids),
            'ua_ids': tuple(ua_ids),
            'visited_url': signals.origin,
        }
        return AnalysisResult(score=score, message=message, details=MappingProxyType(details))

    def analyze(self, url: str) -> AnalysisResult:
        """Analyse the origin of ``url``.

        Raises ``InvalidURL`` before any network call, and ``Forbidden``,
        ``FetchFailed`` or ``FetchError`` when the page itself cannot be
        retrieved. Container failures never escape.
        """
        origin = normalize_url(url)
        session = self.session or requests.Session()
        try:
            signals = self.collect_signals(origin, self.make_fetcher(session))
        finally:
            if self.session is None:
                session.close()

        score, message = self.scorer.evaluate(signals)
        self.logger.info(f"{origin}: score {score}")
        return self.assemble(signals, score, message)

    def analyze_row(self, url: str) -> Dict[str, Any]:
        """Flat result for batch runs; failures become an error row"""
        start_time = time.time()
        row = {
            'url': url,
            'status': 'success',
            'origin': None,
            'score': None,
            'message': None,
            'error': None,
        }
        try:
            result = self.analyze(url)
            row['origin'] = result.origin
            row['score'] = result.score
            row['message'] = result.message
            row.update({key: value for key, value in result.details.items()
                        if key not in ('visited_url', 'ga4_ids', 'gtm_ids', 'ua_ids')})
        except AnalysisError as e:
            row['status'] = 'error'
            row['error'] = str(e)[:200]
        row['load_time'] = round(time.time() - start_time, 2)
        return row

    def check_urls(self, urls: List[str]) -> List[Dict[str, Any]]:
        """Analyse many inputs on a thread pool, one row per input"""
        results = []
        executor = ThreadPoolExecutor(max_workers=self.config.max_workers)
        try:
            futures = [executor.submit(self.analyze_row, url) for url in urls]
            for i, future in enumerate(as_completed(futures)):
                results.append(future.result())
                self.logger.info(f"Progress: {i + 1}/{len(urls)} URLs analyzed")
        except KeyboardInterrupt:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return results

    def save_results(self, results: List[Dict[str, Any]], filename: str = 'results.csv'):
        fieldnames = ['url', 'status', 'origin', 'score', 'message', 'ga4_id', 'gtm_id', 'ua_id',
                      'has_ga4_direct', 'has_ga4_gtm', 'has_gtm', 'has_ua', 'is_sgtm',
                      'obfuscated_gtm', 'loader_script', 'error', 'load_time']
        with open(filename, 'w', newline='', encoding='utf-8') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=fieldnames, extrasaction='ignore')
            writer.writeheader()
            for result in results:
                writer.writerow({field: result.get(field, '') for field in fieldnames})

        self.logger.info(f"Results saved to {filename}")


def load_urls_from_csv(filename: str, column_name: str = 'URL') -> List[str]:
    """Load the non-empty values of one CSV column.

    Raises ``KeyError`` when the column is missing.
    """
    logger = logging.getLogger(__name__)
    urls = []
    with open(filename, 'r', encoding='utf-8', newline='') as csvfile:
        reader = csv.DictReader(csvfile)

        if column_name not in (reader.fieldnames or []):
            raise KeyError(f"Column '{column_name}' not found in {filename}. "
                           f"Available columns: {', '.join(reader.fieldnames or [])}")

        for row in reader:
            url = (row[column_name] or '').strip()
            if url:
                urls.append(url)

    logger.info(f"Loaded {len(urls)} URLs from {filename}")
    return urls
