import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from .cache_store import CsvCacheStore
from .config import CacheConfig, DetectorConfig
from .detector import Ga4Checker, load_urls_from_csv
from .fetcher import RetryConfig
from .messages import MESSAGES
from .service import CachedChecker, CheckResponse


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='ga4check',
        description='Score the GA4 implementation maturity (2-4) of websites.',
    )
    parser.add_argument('urls', nargs='*', help='URLs or bare domains to analyze')
    parser.add_argument('--csv', dest='csv_file', help='read URLs from a CSV file (batch mode)')
    parser.add_argument('--column', default='URL', help='CSV column holding the URLs (default: URL)')
    parser.add_argument('--output', default='ga4check_results.csv', help='batch results CSV')
    parser.add_argument('--json', action='store_true', help='print the JSON response for each URL')
    parser.add_argument('--lang', choices=sorted(MESSAGES), default='ja', help='message language')
    parser.add_argument('--no-cache', action='store_true', help='ignore and do not write the analysis log')
    parser.add_argument('--refresh', action='store_true', help='skip cache lookup but still log the result')
    parser.add_argument('--cache-path', help='analysis log CSV (default from GA4CHECK_CACHE_PATH)')
    parser.add_argument('--timeout', type=float, default=10, help='page fetch timeout in seconds')
    parser.add_argument('--retries', type=int, default=0, help='retries on network errors')
    parser.add_argument('--workers', type=int, default=2, help='parallel analyses in batch mode')
    parser.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    return parser


def print_response(url: str, response: CheckResponse):
    body = response.body
    print(f"\nAnalyzing URL: {url}")
    print("-" * 60)
    if not response.ok:
        print(f"Error ({response.status}): {body.get('message')}")
        return

    details = body.get('details', {})
    print(f"Origin: {details.get('visited_url')}{' (cached)' if response.cached else ''}")
    print(f"Score: {body['score']}")
    for key, label in (('ga4_id', 'GA4'), ('gtm_id', 'GTM'), ('ua_id', 'UA')):
        value = details.get(key)
        print(f"  {'✓' if value else '✗'} {label}: {value or 'NOT DETECTED'}")
    print(f"  sGTM: {'DETECTED' if details.get('is_sgtm') else 'NOT DETECTED'}")
    print()
    print(body['message'])


def run_batch(checker: Ga4Checker, args) -> int:
    try:
        urls = load_urls_from_csv(args.csv_file, args.column)
    except (OSError, KeyError) as e:
        print(f"Error reading CSV file {args.csv_file}: {e}")
        return 1
    if not urls:
        print("No URLs to analyze. Please check your CSV file.")
        return 1

    print(f"ANALYZING {len(urls)} URLs...")
    start_time = time.time()
    results = checker.check_urls(urls)
    total_time = time.time() - start_time
    print(f"\nAnalysis completed in {total_time:.2f}s")

    for i, result in enumerate(results, 1):
        status = f"score {result['score']}" if result['status'] == 'success' else f"error: {result['error']}"
        print(f"[{i}/{len(results)}] {result['url']} -> {status}")

    checker.save_results(results, args.output)
    print(f"Results saved to {args.output}")
    return 0 if all(result['status'] == 'success' for result in results) else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.urls and not args.csv_file:
        parser.error('give at least one URL or --csv FILE')

    setup_logging(args.verbose)

    config = DetectorConfig(
        page_timeout=args.timeout,
        retry_config=RetryConfig(max_retries=max(args.retries, 0), backoff_factor=1),
        locale=args.lang,
        max_workers=max(args.workers, 1),
    )
    checker = Ga4Checker(config)

    if args.csv_file:
        return run_batch(checker, args)

    cache_config = CacheConfig.from_env()
    if args.cache_path:
        cache_config.path = args.cache_path
    if args.no_cache:
        cache_config.enabled = False
    store = CsvCacheStore(cache_config.path) if cache_config.enabled else None
    service = CachedChecker(checker, store, cache_config)

    exit_code = 0
    for url in args.urls:
        response = service.check(url, bypass_cache=args.refresh)
        if args.json:
            print(json.dumps(response.body, ensure_ascii=False, indent=2))
        else:
            print_response(url, response)
        if not response.ok:
            exit_code = 1
    return exit_code


if __name__ == '__main__':
    sys.exit(main())
