"""Site identity: canonical domain and fingerprint for a user-supplied URL."""
from __future__ import annotations

import hashlib
import ipaddress
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from beacon.errors import InvalidIdentity

_SCHEME_RE = re.compile(r"^https?://", re.I)
_HOST_RE = re.compile(r"^[a-z0-9_-]+(\.[a-z0-9_-]+)*\.?$")


@dataclass(frozen=True)
class SiteIdentity:
    domain: str
    fingerprint: str


def fingerprint(domain: str) -> str:
    """SHA-256 hex digest of the normalized domain (64 chars)."""
    return hashlib.sha256(domain.encode("utf-8")).hexdigest()


def _valid_host(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    return bool(_HOST_RE.match(host))


def normalize_domain(raw: str | None) -> str:
    url = (raw or "").strip()
    if not url:
        raise InvalidIdentity()
    if not _SCHEME_RE.match(url):
        url = "https://" + url
    try:
        host = urlsplit(url).hostname or ""
        host = host.encode("idna").decode("ascii").lower()
    except (ValueError, UnicodeError) as exc:
        raise InvalidIdentity() from exc
    if host.startswith("www."):
        host = host[4:]
    if not host or not _valid_host(host):
        raise InvalidIdentity()
    return host


def normalize(raw: str | None) -> SiteIdentity:
    """Canonicalize *raw* into a SiteIdentity. Pure; raises InvalidIdentity."""
    domain = normalize_domain(raw)
    return SiteIdentity(domain=domain, fingerprint=fingerprint(domain))
