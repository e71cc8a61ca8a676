"""Deep inspection of GTM container scripts.

For every container id found on the page the public ``gtm.js`` is fetched
and searched for nested GA4/UA ids and for evidence that hits are proxied
through a first-party host (server-side GTM or a custom loader). Scanning
stops at the first container that confirms a server-side signal.
"""
import logging
from typing import List, Optional
from urllib.parse import urlsplit

from .errors import AnalysisError
from .extractor import find_unique
from .fetcher import PageFetcher
from .models import ContainerScan, ScanStatus, SignalSet
from .patterns import CompiledPatterns
from .urls import is_ip_literal, is_same_root


def value_host(value: str) -> Optional[str]:
    """Host named by a configured URL value, which may lack a scheme"""
    value = value.strip()
    index = value.find('//')
    if index != -1:
        value = 'https:' + value[index:]
    else:
        value = 'https://' + value.lstrip('/')
    try:
        host = urlsplit(value).hostname
    except ValueError:
        return None
    return host.rstrip('.') if host else None


class ContainerScanner:
    def __init__(self, fetcher: PageFetcher, patterns: CompiledPatterns = None):
        self.fetcher = fetcher
        self.patterns = patterns or CompiledPatterns()
        self.logger = logging.getLogger(__name__)

    def first_party_subdomains(self, script: str, hostname: str, root: str) -> List[str]:
        """Subdomains of the site's root domain other than the page host"""
        if is_ip_literal(root):
            return []
        found = []
        for match in self.patterns.first_party_host(root).findall(script):
            host = match.lower().strip('.')
            if host != hostname and host not in found:
                found.append(host)
        return found

    def _is_proxy_host(self, host: Optional[str], hostname: str, root: str) -> bool:
        return bool(host) and host != hostname and is_same_root(host, root)

    def server_container_hosts(self, script: str, hostname: str, root: str) -> List[str]:
        """First-party hosts configured as ``server_container_url``"""
        if self.patterns.server_container_keyword not in script:
            return []
        hosts = []
        for value in self.patterns.server_container_value.findall(script):
            host = value_host(value)
            if self._is_proxy_host(host, hostname, root) and host not in hosts:
                hosts.append(host)
        return hosts

    def collect_values(self, script: str) -> List[str]:
        """URL prefixes in front of every ``/g/collect`` occurrence"""
        keyword = self.patterns.collect_keyword
        values = []
        index = script.find(keyword)
        while index != -1:
            window = script[max(0, index - self.patterns.collect_window):index]
            match = self.patterns.collect_value.search(window)
            if match:
                values.append(match.group(1))
            index = script.find(keyword, index + len(keyword))
        return values

    def collect_hosts(self, script: str, hostname: str, root: str) -> List[str]:
        """First-party hosts serving a ``/g/collect`` endpoint"""
        if self.patterns.collect_keyword not in script:
            return []
        hosts = []
        for value in self.collect_values(script):
            host = value_host(value)
            if not self._is_proxy_host(host, hostname, root):
                continue
            if any(is_same_root(host, domain) for domain in self.patterns.google_collect_domains):
                continue
            if host not in hosts:
                hosts.append(host)
        return hosts

    def inspect(self, gtm_id: str, script: str, hostname: str, root: str) -> ContainerScan:
        """Analyse an already fetched container script"""
        # gtm.js embeds its config as JSON with escaped slashes
        script = script.replace('\\/', '/')
        scan = ContainerScan(
            gtm_id=gtm_id,
            status=ScanStatus.SCANNED,
            ga4_ids=find_unique(self.patterns.ga4_measurement_id, script),
            ua_ids=find_unique(self.patterns.ua_tracking_id, script),
        )

        for host in self.first_party_subdomains(script, hostname, root):
            scan.signals.append(f'first-party host {host}')
        for host in self.server_container_hosts(script, hostname, root):
            scan.signals.append(f'server_container_url {host}')
        for host in self.collect_hosts(script, hostname, root):
            scan.signals.append(f'collect endpoint {host}')

        if scan.signals:
            scan.status = ScanStatus.SERVER_SIDE
        return scan

    def scan_container(self, gtm_id: str, hostname: str, root: str) -> ContainerScan:
        try:
            script = self.fetcher.fetch_container(gtm_id)
        except AnalysisError as e:
            self.logger.warning(f"Skipping container {gtm_id}: {e}")
            return ContainerScan(gtm_id=gtm_id, status=ScanStatus.FAILED, error=str(e))
        return self.inspect(gtm_id, script, hostname, root)

    def scan(self, signals: SignalSet) -> SignalSet:
        """Scan every container in discovery order, stopping at the first server-side hit"""
        for gtm_id in signals.gtm_ids:
            scan = self.scan_container(gtm_id, signals.hostname, signals.root_domain)
            signals.container_scans.append(scan)
            signals.add_container_ids(scan)

            if scan.status == ScanStatus.SERVER_SIDE:
                signals.server_side_signal_found = True
                self.logger.info(f"Server-side signal in {gtm_id}: {'; '.join(scan.signals)}")
                break
        return signals
