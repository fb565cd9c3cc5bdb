"""Report cache: get-or-create keyed by site fingerprint.

At most one ``Report`` row exists per fingerprint. The unique index on
``reports.fingerprint`` decides concurrent misses: the losing writer sees an
``IntegrityError``, rolls back and re-reads the winner's row. No in-process
locking is involved, so the guarantee holds across workers and instances.
"""
from __future__ import annotations

import inspect
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from beacon.errors import CacheStorageError
from beacon.identity import SiteIdentity
from beacon.models import Report, utcnow
from beacon.sources import ReportSource

log = logging.getLogger(__name__)

REPORT_FIELDS = ("score", "summary", "title", "meta_description", "h1_count")


def _clamp_score(score: Any) -> int:
    """Round half-up to a whole point and clamp to 0-100."""
    if isinstance(score, bool):
        raise TypeError("bool is not a score")
    value = Decimal(str(score).strip()).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(value)))


async def run_source(source: ReportSource, domain: str) -> dict[str, Any]:
    """Invoke a sync or async report source and normalize its output."""
    result = source.analyze(domain)
    if inspect.isawaitable(result):
        result = await result
    result = dict(result or {})
    score = result.get("score")
    if score is not None:
        try:
            score = _clamp_score(score)
        except (InvalidOperation, TypeError, ValueError, OverflowError):
            log.warning("Report source returned unusable score %r for %s", score, domain)
            score = None
    result["score"] = score
    result["summary"] = str(result.get("summary") or "")
    return result


async def _find_report(session: AsyncSession, fingerprint: str) -> Report | None:
    result = await session.execute(
        select(Report).where(Report.fingerprint == fingerprint)
    )
    return result.scalars().first()


async def get_report(session: AsyncSession, fingerprint: str) -> Report | None:
    try:
        return await _find_report(session, fingerprint)
    except SQLAlchemyError:
        log.exception("Report lookup failed for %s", fingerprint)
        raise CacheStorageError() from None


async def get_or_create(
    session: AsyncSession, identity: SiteIdentity, source: ReportSource,
) -> tuple[Report, bool]:
    """Return ``(report, was_cached)``. Commits on a successful insert."""
    cached = await get_report(session, identity.fingerprint)
    if cached is not None:
        log.info("Report cache hit for %s", identity.domain)
        return cached, True

    log.info("Report cache miss for %s", identity.domain)
    result = await run_source(source, identity.domain)
    report = Report(
        fingerprint=identity.fingerprint,
        domain=identity.domain,
        **{f: result.get(f) for f in REPORT_FIELDS},
    )
    try:
        session.add(report)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        log.info("Concurrent insert won for %s; re-reading", identity.domain)
        existing = await get_report(session, identity.fingerprint)
        if existing is None:
            log.error("Report insert conflicted but no row was found for %s", identity.domain)
            raise CacheStorageError()
        return existing, True
    except SQLAlchemyError:
        await session.rollback()
        log.exception("Report insert failed for %s", identity.domain)
        raise CacheStorageError() from None
    return report, False


async def overwrite_report(
    session: AsyncSession, identity: SiteIdentity, source: ReportSource,
) -> Report:
    """Re-run the source and overwrite the stored analysis. Only called explicitly."""
    result = await run_source(source, identity.domain)
    for attempt in (1, 2):
        try:
            report = await _find_report(session, identity.fingerprint)
            if report is None:
                report = Report(fingerprint=identity.fingerprint, domain=identity.domain)
                session.add(report)
            for f in REPORT_FIELDS:
                setattr(report, f, result.get(f))
            report.updated_at = utcnow()
            await session.commit()
            return report
        except IntegrityError:
            # another writer created the row between our read and insert
            await session.rollback()
            if attempt == 2:
                log.error("Report overwrite for %s kept conflicting", identity.domain)
        except SQLAlchemyError:
            await session.rollback()
            log.exception("Report overwrite failed for %s", identity.domain)
            raise CacheStorageError() from None
    raise CacheStorageError()
