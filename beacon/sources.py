"""Report sources: produce score/summary/analysis fields for a normalized domain."""
from __future__ import annotations

import ipaddress
import logging
from typing import Any, Protocol

import httpx
from lxml import etree, html as lxml_html

from beacon.config import Settings
from beacon.recommend import build_issues, score_from_issues

log = logging.getLogger(__name__)

_MAX_FIELD = 500

STUB_SCORE = 65
STUB_SUMMARY = "Solid foundation, but performance, SEO, and conversion clarity can be improved."


class ReportSource(Protocol):
    """Anything with ``analyze(domain)`` returning a dict (or an awaitable of one)."""

    def analyze(self, domain: str) -> Any: ...


class StubReportSource:
    """Fixed analysis used until a real crawler is wired in."""

    async def analyze(self, domain: str) -> dict[str, Any]:
        return {"score": STUB_SCORE, "summary": STUB_SUMMARY}


def site_url(domain: str) -> str:
    """Home page URL for a normalized domain; IPv6 literals are bracketed."""
    try:
        if ipaddress.ip_address(domain).version == 6:
            return f"https://[{domain}]"
    except ValueError:
        pass
    return f"https://{domain}"


class PageReportSource:
    """Fetch the site's home page and grade its title, meta description and H1s."""

    def __init__(self, user_agent: str, timeout: float = 15.0):
        self.user_agent = user_agent
        self.timeout = timeout

    async def analyze(self, domain: str) -> dict[str, Any]:
        url = site_url(domain)
        try:
            raw_html = await self._fetch(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning("Failed to fetch %s: %s", url, exc)
            return {"score": None, "summary": f"We could not load {url} to analyze it."}
        fields = extract_page_fields(raw_html)
        issues = build_issues(fields)
        return {
            **fields,
            "score": score_from_issues(issues),
            "summary": summarize_issues(issues),
        }

    async def _fetch(self, url: str) -> str:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": self.user_agent},
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.text


def extract_page_fields(raw_html: str) -> dict[str, Any]:
    """Title, meta description and H1 count from raw HTML; None when unparseable."""
    try:
        tree = lxml_html.fromstring(raw_html)
    except (etree.ParserError, etree.XMLSyntaxError, ValueError):
        return {"title": None, "meta_description": None, "h1_count": None}
    title = " ".join(tree.xpath("//title//text()")).strip()
    meta = " ".join(tree.xpath("//meta[translate(@name, 'DESCRIPTON', 'descripton')='description']/@content")).strip()
    return {
        "title": title[:_MAX_FIELD] or None,
        "meta_description": meta[:_MAX_FIELD] or None,
        "h1_count": len(tree.xpath("//h1")),
    }


def summarize_issues(issues: list[dict[str, str]]) -> str:
    if not issues:
        return "No major issues found from basic checks. Next wins come from speed, conversion clarity, and advanced SEO."
    labels = "; ".join(i["label"] for i in issues)
    return f"Found {len(issues)} issue(s) worth fixing: {labels}."


def build_report_source(settings: Settings) -> ReportSource:
    if settings.report_source == "page":
        return PageReportSource(settings.user_agent, settings.request_timeout_seconds)
    if settings.report_source != "stub":
        log.warning("Unknown report source %r; using stub", settings.report_source)
    return StubReportSource()
