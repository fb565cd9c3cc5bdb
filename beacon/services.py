"""Request pipeline shared by the HTTP routes.

validate email -> normalize site -> report cache -> recommendation -> lead.
Email dispatch is left to the caller so it can run after the response.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from beacon import cache
from beacon.email_check import validate_email
from beacon.errors import MissingFields
from beacon.identity import SiteIdentity, normalize
from beacon.leads import business_name_or_default, record_lead
from beacon.models import Report
from beacon.recommend import Recommendation, recommend, score_label
from beacon.schemas import AnalyzeRequest
from beacon.sources import ReportSource

log = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    email: str
    identity: SiteIdentity
    report: Report
    cached: bool
    recommendation: Recommendation
    business_name: str
    notify: bool


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def report_to_dict(report: Report) -> dict[str, Any]:
    return {
        "fingerprint": report.fingerprint, "domain": report.domain,
        "score": report.score, "summary": report.summary or "",
        "title": report.title, "meta_description": report.meta_description,
        "h1_count": report.h1_count,
        "created_at": _iso(report.created_at), "updated_at": _iso(report.updated_at),
    }


def report_payload(report: Report) -> dict[str, Any]:
    """Report plus its recomputed recommendation, as returned by the API."""
    return {
        "report": report_to_dict(report),
        "recommendation": recommend(report.score).to_dict(),
        "score_label": score_label(report.score),
    }


async def analyze_site(
    session: AsyncSession, body: AnalyzeRequest, source: ReportSource,
) -> AnalysisOutcome:
    """Validate, resolve the cached report and record a lead.

    Validation errors raise before anything is written. Cache storage errors
    propagate as CacheStorageError. Lead failures are swallowed by the recorder.
    """
    if not (body.email or "").strip() or not (body.website or "").strip():
        raise MissingFields()

    email = await validate_email(body.email)
    identity = normalize(body.website)

    report, cached = await cache.get_or_create(session, identity, source)
    # detached: a lead rollback must not expire what the email task reads
    session.expunge(report)
    recommendation = recommend(report.score)
    business_name = business_name_or_default(body.business_name)

    await record_lead(
        session, email, identity, report, recommendation,
        business_name=body.business_name, contact_name=body.name,
    )
    # cached reports are only re-sent on explicit refresh
    notify = (not cached) or body.refresh
    return AnalysisOutcome(
        email=email, identity=identity, report=report, cached=cached,
        recommendation=recommendation, business_name=business_name, notify=notify,
    )
