"""URL normalization.

Every analysis is keyed by the origin of whatever the user typed: the scheme,
host and port, with path, query and fragment discarded. The same string is
used as the cache key and as the fetch target.
"""
import ipaddress
import re
from urllib.parse import urlsplit

from .errors import InvalidURL

SCHEME_PREFIX = re.compile(r'^https?://', re.IGNORECASE)
HOST_LABELS = re.compile(r'^[a-z0-9_](?:[a-z0-9_-]*[a-z0-9_])?(?:\.[a-z0-9_](?:[a-z0-9_-]*[a-z0-9_])?)*$')
DEFAULT_PORTS = {'http': 80, 'https': 443}


def _normalize_host(hostname: str, raw: str) -> str:
    if ':' in hostname:
        try:
            return f'[{ipaddress.IPv6Address(hostname).compressed}]'
        except ValueError:
            raise InvalidURL(raw)

    hostname = hostname.rstrip('.')
    try:
        hostname = hostname.encode('idna').decode('ascii').lower()
    except UnicodeError:
        raise InvalidURL(raw)

    if not HOST_LABELS.match(hostname):
        raise InvalidURL(raw)
    return hostname


def normalize_url(raw: str) -> str:
    """Reduce user input to ``scheme://host[:port]``.

    Inputs without an ``http``/``https`` scheme get ``https://`` prepended.
    Raises ``InvalidURL`` when no host can be parsed out of the result.
    """
    if raw is None:
        raise InvalidURL('')

    target = raw.strip()
    if not target:
        raise InvalidURL(raw)
    if not SCHEME_PREFIX.match(target):
        target = f'https://{target}'

    try:
        parts = urlsplit(target)
        port = parts.port
    except ValueError:
        raise InvalidURL(raw)

    if not parts.hostname:
        raise InvalidURL(raw)

    scheme = parts.scheme.lower()
    host = _normalize_host(parts.hostname, raw)
    if port is not None and port != DEFAULT_PORTS[scheme]:
        return f'{scheme}://{host}:{port}'
    return f'{scheme}://{host}'


def hostname_of(origin: str) -> str:
    return urlsplit(origin).hostname or ''


def is_ip_literal(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def root_domain(hostname: str) -> str:
    """Last two labels of ``hostname`` (``shop.example.com`` -> ``example.com``).

    IP literals have no parent domain and are their own root.
    """
    if is_ip_literal(hostname):
        return hostname.lower()
    return '.'.join(hostname.lower().split('.')[-2:])


def is_same_root(hostname: str, root: str) -> bool:
    hostname = (hostname or '').lower().rstrip('.')
    if hostname == root:
        return True
    return not is_ip_literal(root) and hostname.endswith('.' + root)


def strip_trailing_slash(url: str) -> str:
    return url.rstrip('/') if url else ''
