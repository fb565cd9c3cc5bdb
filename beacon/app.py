from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from beacon import cache, services
from beacon.config import Settings, get_settings
from beacon.db import dispose_db, get_session, init_db
from beacon.errors import BeaconError, ReportNotFound
from beacon.identity import SiteIdentity
from beacon.notify import NotificationSink, build_sink, send_report_email
from beacon.schemas import AnalyzeRequest, AnalyzeResponse, EventRequest
from beacon.sources import ReportSource, build_report_source
from beacon.tracker import DEFAULT_EVENT_TYPE, is_safe_destination, log_event

log = logging.getLogger(__name__)

ANALYZE_FAILED = "Analysis failed. Please try again later."


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    await init_db()
    app.state.report_source = build_report_source(settings)
    app.state.sink = build_sink(settings)
    yield
    await dispose_db()


app = FastAPI(
    title="Beacon AI",
    version="0.1.0",
    description=(
        "Website report API. Analyzes a site once per normalized domain, "
        "recommends a priced package, emails the requester and tracks "
        "call-to-action clicks. No authentication required."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Reports", "description": "Analyze websites and read cached reports."},
        {"name": "Tracking", "description": "Tracked redirects and interaction events."},
        {"name": "Admin", "description": "Health and maintenance operations."},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Dependencies & Error handlers
# ---------------------------------------------------------------------------


async def db_session() -> AsyncGenerator[AsyncSession, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


def report_source(request: Request) -> ReportSource:
    return request.app.state.report_source


def notification_sink(request: Request) -> NotificationSink | None:
    return request.app.state.sink


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


@app.exception_handler(BeaconError)
async def beacon_error_handler(request: Request, exc: BeaconError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _error(exc.status_code, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    log.debug("Rejected body for %s: %s", request.url.path, exc.errors())
    return _error(400, "Invalid request body.")


# ---------------------------------------------------------------------------
# Routes: Health
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Admin"], summary="Liveness check")
async def health():
    return {"ok": True, "message": "Beacon AI backend running"}


# ---------------------------------------------------------------------------
# Routes: Reports
# ---------------------------------------------------------------------------


@app.post("/api/analyze", response_model=AnalyzeResponse,
          tags=["Reports"], summary="Analyze a website (cached per domain) and email the report")
async def analyze(
    body: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(db_session),
    source: ReportSource = Depends(report_source),
    sink: NotificationSink | None = Depends(notification_sink),
    settings: Settings = Depends(get_settings),
):
    log.debug("Analyze request for %s", body.website)
    try:
        outcome = await services.analyze_site(session, body, source)
    except BeaconError:
        raise
    except Exception:
        log.exception("Analyze failed for %s", body.website)
        return _error(500, ANALYZE_FAILED)

    if outcome.notify:
        background_tasks.add_task(
            send_report_email, sink, outcome.email, outcome.report, outcome.identity,
            outcome.business_name, outcome.recommendation, settings,
        )
    return {"ok": True, "cached": outcome.cached, **services.report_payload(outcome.report)}


@app.get("/api/reports/{fingerprint}", tags=["Reports"], summary="Get a cached report by fingerprint")
async def get_report(fingerprint: str, session: AsyncSession = Depends(db_session)):
    report = await cache.get_report(session, fingerprint)
    if report is None:
        raise ReportNotFound()
    return {"ok": True, **services.report_payload(report)}


@app.post("/api/reports/{fingerprint}/reanalyze", tags=["Reports"],
          summary="Re-run the analysis and overwrite the cached report")
async def reanalyze_report(
    fingerprint: str,
    session: AsyncSession = Depends(db_session),
    source: ReportSource = Depends(report_source),
):
    report = await cache.get_report(session, fingerprint)
    if report is None:
        raise ReportNotFound()
    identity = SiteIdentity(domain=report.domain, fingerprint=report.fingerprint)
    report = await cache.overwrite_report(session, identity, source)
    return {"ok": True, **services.report_payload(report)}


# ---------------------------------------------------------------------------
# Routes: Tracking
# ---------------------------------------------------------------------------


@app.get("/r", tags=["Tracking"], summary="Log a click event and redirect to the destination")
async def tracked_redirect(
    request: Request,
    to: str | None = Query(None, description="Destination, must be http(s)://"),
    e: str = Query(DEFAULT_EVENT_TYPE, description="Event type"),
    h: str | None = Query(None, description="Report fingerprint"),
    d: str | None = Query(None, description="Domain"),
    t: str | None = Query(None, description="Recommended tier"),
    session: AsyncSession = Depends(db_session),
):
    if not is_safe_destination(to):
        return PlainTextResponse("Bad redirect", status_code=400)
    destination = to.strip()
    try:
        await log_event(
            session, e or DEFAULT_EVENT_TYPE, fingerprint=h, domain=d, tier=t,
            meta={
                "user_agent": request.headers.get("user-agent"),
                "referer": request.headers.get("referer"),
                "to": destination,
            },
        )
        return RedirectResponse(destination, status_code=302)
    except Exception as exc:
        log.exception("Redirect failed for %s: %s", destination, exc)
        return PlainTextResponse("Redirect failed", status_code=500)


@app.post("/api/events", tags=["Tracking"], summary="Record a UI interaction event")
async def record_event(body: EventRequest, request: Request, session: AsyncSession = Depends(db_session)):
    meta = {"user_agent": request.headers.get("user-agent"), **body.meta}
    event = await log_event(
        session, body.event_type, email=body.email, fingerprint=body.fingerprint,
        domain=body.domain, tier=body.tier, meta=meta,
    )
    return {"ok": event is not None}


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    uvicorn.run("beacon.app:app", host="127.0.0.1", port=3001)


if __name__ == "__main__":
    main()
