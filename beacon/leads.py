"""Lead recorder: insert-only, best-effort snapshot of one contact's request."""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from beacon.errors import LeadWriteFailure
from beacon.identity import SiteIdentity
from beacon.models import Lead, Report
from beacon.recommend import Recommendation

log = logging.getLogger(__name__)

UNKNOWN_BUSINESS = "Unknown Business"


def business_name_or_default(value: str | None) -> str:
    return (value or "").strip() or UNKNOWN_BUSINESS


def build_lead(
    email: str,
    identity: SiteIdentity,
    report: Report,
    recommendation: Recommendation,
    business_name: str | None = None,
    contact_name: str | None = None,
) -> Lead:
    return Lead(
        email=email,
        business_name=business_name_or_default(business_name),
        contact_name=(contact_name or "").strip() or None,
        domain=identity.domain,
        fingerprint=identity.fingerprint,
        score=report.score,
        summary=report.summary,
        tier=recommendation.tier.value,
        package_name=recommendation.package_name,
        base_price=recommendation.base_price,
        discount_percent=recommendation.discount_percent,
        discounted_price=recommendation.discounted_price,
        discount_code=recommendation.code,
        discount_deadline_hours=recommendation.validity_hours,
    )


async def _insert_lead(session: AsyncSession, lead: Lead) -> None:
    session.add(lead)
    await session.commit()


async def record_lead(
    session: AsyncSession,
    email: str,
    identity: SiteIdentity,
    report: Report,
    recommendation: Recommendation,
    business_name: str | None = None,
    contact_name: str | None = None,
) -> Lead | None:
    """Persist a new Lead. Never raises: failures are logged and ``None`` returned."""
    lead = build_lead(email, identity, report, recommendation, business_name, contact_name)
    try:
        await _insert_lead(session, lead)
    except Exception as exc:
        await session.rollback()
        log.warning("%s", LeadWriteFailure(f"Lead save failed for {identity.domain}: {exc}"))
        return None
    return lead
