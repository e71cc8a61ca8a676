import re


# Compiled regex patterns for performance
class CompiledPatterns:
    def __init__(self):
        # Tracking identifier shapes. Case is fixed: real ids are uppercase.
        self.ga4_measurement_id = re.compile(r'G-[A-Z0-9]{10,}')
        self.gtm_container_id = re.compile(r'GTM-[A-Z0-9]{6,}')
        self.ua_tracking_id = re.compile(r'UA-[0-9]+-[0-9]+')

        # Runs of base64 alphabet long enough to hide a container id
        self.base64_candidate = re.compile(r'[a-zA-Z0-9+/]{20,}')

        # Loader conventions for first-party scripts
        self.loader_query_params = frozenset({'id', 'st'})
        self.loader_path_segment = re.compile(r'gtm', re.IGNORECASE)
        self.loader_filename = re.compile(r'/[A-Za-z0-9]{8,}\.js$')

        # Server-side container configuration inside gtm.js
        self.server_container_keyword = 'server_container_url'
        self.collect_keyword = '/g/collect'
        self.server_container_value = re.compile(
            r'server_container_url["\']?\s*[:,]\s*["\']([^"\']+)["\']', re.IGNORECASE)
        # URL text directly in front of a /g/collect occurrence, searched in a
        # bounded window ending at the keyword
        self.collect_value = re.compile(r'([^"\'\s]+)$')
        self.collect_window = 256

        # Hosts that are Google's own collection endpoints
        self.google_collect_domains = ('google-analytics.com',)

    def first_party_host(self, root_domain: str) -> re.Pattern:
        """Any subdomain of ``root_domain`` appearing in free text."""
        return re.compile(
            r'[a-zA-Z0-9.-]+\.' + re.escape(root_domain) + r'(?![a-zA-Z0-9-])', re.IGNORECASE)
