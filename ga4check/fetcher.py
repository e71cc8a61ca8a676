import logging
import random
import time
from typing import Callable, Dict, Optional

import requests

from .errors import FetchError, FetchFailed, Forbidden

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'
)
CONTAINER_USER_AGENT = 'Mozilla/5.0'


class RetryConfig:
    """Configuration for retry logic with exponential backoff"""

    def __init__(self, max_retries: int = 0, base_delay: float = 1.0, max_delay: float = 30.0,
                 backoff_factor: float = 2.0):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor

    def get_delay(self, retry_count: int) -> float:
        """Calculate delay with exponential backoff and jitter"""
        delay = min(self.base_delay * (self.backoff_factor ** retry_count), self.max_delay)
        # Add jitter to prevent thundering herd
        jitter = delay * 0.1 * random.random()
        return delay + jitter


def retry_sync(func: Callable, *args, retry_config: RetryConfig = None,
               retry_on=(FetchError,), sleep: Callable[[float], None] = time.sleep, **kwargs):
    """Synchronous retry with exponential backoff.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates on the first attempt.
    """
    if retry_config is None:
        retry_config = RetryConfig()

    for attempt in range(retry_config.max_retries + 1):
        try:
            return func(*args, **kwargs)
        except retry_on:
            if attempt == retry_config.max_retries:
                raise
            sleep(retry_config.get_delay(attempt))


class PageFetcher:
    """Retrieves the page HTML and GTM container scripts over HTTP"""

    def __init__(self, session: Optional[requests.Session] = None, page_timeout: float = 10,
                 container_timeout: float = 5, user_agent: str = DEFAULT_USER_AGENT,
                 accept_language: str = 'ja,en-US;q=0.9,en;q=0.8',
                 container_url_template: str = 'https://www.googletagmanager.com/gtm.js?id={gtm_id}',
                 retry_config: RetryConfig = None):
        self.session = session or requests.Session()
        self.page_timeout = page_timeout
        self.container_timeout = container_timeout
        self.user_agent = user_agent
        self.accept_language = accept_language
        self.container_url_template = container_url_template
        self.retry_config = retry_config or RetryConfig()
        self.logger = logging.getLogger(__name__)

    def get_headers(self) -> Dict[str, str]:
        return {
            'User-Agent': self.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,'
                      'image/apng,*/*;q=0.8',
            'Accept-Language': self.accept_language,
            'Accept-Encoding': 'gzip, deflate',
            'Cache-Control': 'max-age=0',
            'Sec-Ch-Ua': '"Not A(Brand";v="99", "Google Chrome";v="121", "Chromium";v="121"',
            'Sec-Ch-Ua-Mobile': '?0',
            'Sec-Ch-Ua-Platform': '"Windows"',
            'Sec-Fetch-Dest': 'document',
            'Sec-Fetch-Mode': 'navigate',
            'Sec-Fetch-Site': 'none',
            'Sec-Fetch-User': '?1',
            'Upgrade-Insecure-Requests': '1'
        }

    def _get_page(self, url: str) -> str:
        try:
            response = self.session.get(url, headers=self.get_headers(), timeout=self.page_timeout,
                                        allow_redirects=True)
        except requests.RequestException as e:
            self.logger.warning(f"Error fetching {url}: {e}")
            raise FetchError(url, e) from e

        if response.status_code == 403:
            self.logger.warning(f"{url} refused automated access (403)")
            raise Forbidden(url, response.reason)
        if not 200 <= response.status_code < 300:
            self.logger.warning(f"{url} answered HTTP {response.status_code}")
            raise FetchFailed(url, response.status_code, response.reason)

        return response.text

    def fetch_page(self, origin: str) -> str:
        """GET the origin and return the decoded HTML.

        Raises ``Forbidden`` on 403, ``FetchFailed`` on any other non-2xx
        status and ``FetchError`` on transport failures.
        """
        self.logger.debug(f"Fetching page {origin}")
        html = retry_sync(self._get_page, origin, retry_config=self.retry_config)
        self.logger.debug(f"Fetched {len(html)} characters from {origin}")
        return html

    def container_url(self, gtm_id: str) -> str:
        return self.container_url_template.format(gtm_id=gtm_id)

    def fetch_container(self, gtm_id: str) -> str:
        """GET the public gtm.js for one container.

        Raises the same errors as ``fetch_page``; callers decide whether a
        failure is fatal.
        """
        url = self.container_url(gtm_id)
        try:
            response = self.session.get(url, headers={'User-Agent': CONTAINER_USER_AGENT},
                                        timeout=self.container_timeout)
        except requests.RequestException as e:
            raise FetchError(url, e) from e

        if not 200 <= response.status_code < 300:
            raise FetchFailed(url, response.status_code, response.reason)
        return response.text
