"""
Trusted URL validation for outbound requests.

Every URL (including each redirect hop) must be https and point at a host in
the allow-list for its purpose.
"""

from enum import Enum
from typing import Iterable
from urllib.parse import urlsplit, urlunsplit

from loguru import logger

from waitline.services.errors import InvalidURLError


class TrustedURLPurpose(str, Enum):
    API = "api"
    WEBSITE = "website"


class URLPolicy:
    """Allow-lists of hosts per purpose."""

    def __init__(self, api_hosts: Iterable[str], website_hosts: Iterable[str]):
        self._hosts = {
            TrustedURLPurpose.API: frozenset(h.lower() for h in api_hosts),
            TrustedURLPurpose.WEBSITE: frozenset(h.lower() for h in website_hosts),
        }

    @classmethod
    def from_settings(cls, settings) -> "URLPolicy":
        return cls(settings.trusted_api_hosts, settings.trusted_website_hosts)

    def allowed_hosts(self, purpose: TrustedURLPurpose) -> frozenset[str]:
        return self._hosts[purpose]

    def validate(self, raw_url: str | None, purpose: TrustedURLPurpose) -> str:
        return validate_trusted_url(raw_url, self._hosts[purpose])


def validate_trusted_url(raw_url: str | None, allowed_hosts: Iterable[str]) -> str:
    """
    Return a normalised https URL or raise InvalidURLError.

    Args:
        raw_url: URL as configured on the facility
        allowed_hosts: Lower-case host names accepted for this purpose
    """
    if not raw_url or not raw_url.strip():
        raise InvalidURLError(raw_url, "missing URL")

    try:
        parts = urlsplit(raw_url.strip())
        host = (parts.hostname or "").lower()
        port = parts.port
    except ValueError as e:
        raise InvalidURLError(raw_url, f"unparseable ({e})") from e

    scheme = parts.scheme.lower()
    if not scheme or not host:
        raise InvalidURLError(raw_url, "invalid URL format")

    if scheme != "https":
        logger.warning(f"Blocked non-HTTPS URL: {raw_url}")
        raise InvalidURLError(raw_url, f"scheme '{scheme}' is not https")

    if parts.username or parts.password:
        raise InvalidURLError(raw_url, "credentials in URL are not allowed")

    if host not in set(allowed_hosts):
        logger.warning(f"Blocked untrusted host: {host}")
        raise InvalidURLError(raw_url, f"host '{host}' is not trusted")

    netloc = host if port in (None, 443) else f"{host}:{port}"
    return urlunsplit(("https", netloc, parts.path, parts.query, ""))
