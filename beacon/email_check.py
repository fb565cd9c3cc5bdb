"""Contact email validation: syntax plus mail-exchanger reachability."""
from __future__ import annotations

import logging
import re

import dns.asyncresolver
import dns.exception

from beacon.errors import InvalidEmailFormat, UnreachableEmailDomain

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MX_LIFETIME = 5.0


def clean_email(value: str | None) -> str:
    return (value or "").strip().lower()


def is_valid_email_format(value: str | None) -> bool:
    return bool(EMAIL_RE.match((value or "").strip()))


async def resolve_mx(domain: str) -> list[str]:
    """Return the MX exchange hosts for *domain* (empty on NXDOMAIN/no answer)."""
    answer = await dns.asyncresolver.resolve(domain, "MX", lifetime=_MX_LIFETIME)
    return [str(rdata.exchange).rstrip(".") for rdata in answer]


async def email_has_mx(value: str | None) -> bool:
    email = clean_email(value)
    domain = email.split("@")[1] if "@" in email else ""
    if not domain:
        return False
    try:
        records = await resolve_mx(domain)
    except (dns.exception.DNSException, OSError) as exc:
        log.warning("MX lookup failed for %s: %s", domain, exc)
        return False
    return len(records) > 0


async def validate_email(value: str | None) -> str:
    """Return the cleaned address or raise. Performs no writes."""
    email = clean_email(value)
    if not is_valid_email_format(email):
        raise InvalidEmailFormat()
    if not await email_has_mx(email):
        raise UnreachableEmailDomain()
    return email
