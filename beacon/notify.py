"""Notification composer and sinks.

The composer renders one report into a plain-text and an HTML body. Every
call-to-action in either body is a tracked link through the redirect
endpoint; the real destination only appears as a query parameter there.
"""
from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Protocol

import resend

from beacon.config import Settings
from beacon.errors import NotificationSinkUnavailable
from beacon.identity import SiteIdentity
from beacon.models import Report
from beacon.recommend import Recommendation, build_issues, score_label
from beacon.tracker import tracked_link

log = logging.getLogger(__name__)

CTA_EVENT_TYPE = "cta_book_call"


class NotificationSink(Protocol):
    async def send(
        self, to: str, subject: str, text: str, html: str, bcc: str | None = None,
    ) -> bool: ...


class ResendSink:
    """Deliver mail through the Resend SDK."""

    def __init__(self, api_key: str, sender: str, reply_to: str | None = None):
        if not api_key or not sender:
            raise NotificationSinkUnavailable("RESEND_API_KEY and BEACON_EMAIL_FROM must be set")
        self._api_key = api_key
        self.sender = sender
        self.reply_to = reply_to

    async def send(
        self, to: str, subject: str, text: str, html: str, bcc: str | None = None,
    ) -> bool:
        params: dict[str, object] = {
            "from": self.sender, "to": [to], "subject": subject, "text": text, "html": html,
        }
        if bcc:
            params["bcc"] = [bcc]
        if self.reply_to:
            params["reply_to"] = self.reply_to
        resend.api_key = self._api_key
        # the SDK call is blocking
        response = await asyncio.to_thread(resend.Emails.send, params)
        if not response or "id" not in response:
            log.warning("Resend returned no message id for %s: %r", to, response)
            return False
        log.info("Report email sent to %s (%s)", to, response["id"])
        return True


def build_sink(settings: Settings) -> NotificationSink | None:
    """Return a configured sink, or ``None`` when email is not set up."""
    try:
        return ResendSink(
            settings.resend_api_key, settings.email_from,
            reply_to=settings.support_email or None,
        )
    except NotificationSinkUnavailable as exc:
        log.warning("Email disabled: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComposedMessage:
    subject: str
    text: str
    html: str
    cta_url: str


def _money(value: float) -> str:
    return f"${value:,.2f}"


def compose_report_message(
    report: Report,
    identity: SiteIdentity,
    business_name: str,
    recommendation: Recommendation,
    settings: Settings,
) -> ComposedMessage | None:
    """Build both renderings, or ``None`` if no public base URL is configured."""
    if not settings.public_base_url:
        log.warning("BEACON_PUBLIC_BASE_URL is not set; cannot build tracked links")
        return None

    cta_url = tracked_link(
        settings.public_base_url, settings.book_call_url, CTA_EVENT_TYPE,
        fingerprint=identity.fingerprint, domain=identity.domain,
        tier=recommendation.tier.value,
    )
    score = "N/A" if report.score is None else str(report.score)
    label = score_label(report.score)
    issues = build_issues(report)
    subject = f"Your Beacon AI website report for {business_name}"

    lines = [
        f"Business: {business_name}",
        f"Website: {identity.domain}",
        f"Score: {score} ({label})",
        "",
        "Summary:",
        report.summary or "Not available",
        "",
        "What we found:",
    ]
    if issues:
        lines.extend(f"- {i['label']} ({i['severity']})" for i in issues)
    else:
        lines.append("No major issues found from basic checks.")
    lines += [
        "",
        f"Recommended package: {recommendation.package_name} ({recommendation.tier.value})",
        f"Price: {_money(recommendation.base_price)}",
        f"Your price: {_money(recommendation.discounted_price)} "
        f"({recommendation.discount_percent}% off with code {recommendation.code})",
        recommendation.urgency,
        "",
        "Included:",
        *(f"- {b}" for b in recommendation.features),
        "",
        f"Book a call: {cta_url}",
    ]
    text = "\n".join(lines)

    e = html.escape
    issue_items = "".join(
        f"<li>{e(i['label'])} <em>({e(i['severity'])})</em></li>" for i in issues
    ) or "<li>No major issues found from basic checks.</li>"
    feature_items = "".join(f"<li>{e(b)}</li>" for b in recommendation.features)
    body = f"""<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #0f172a;">
  <h2>Website report for {e(business_name)}</h2>
  <p><strong>Website:</strong> {e(identity.domain)}<br>
     <strong>Score:</strong> {e(score)} ({e(label)})</p>
  <p>{e(report.summary or "Not available")}</p>
  <h3>What we found</h3>
  <ul>{issue_items}</ul>
  <h3>Recommended: {e(recommendation.package_name)}</h3>
  <p><s>{e(_money(recommendation.base_price))}</s>
     <strong>{e(_money(recommendation.discounted_price))}</strong>
     with code <strong>{e(recommendation.code)}</strong></p>
  <p>{e(recommendation.urgency)}</p>
  <ul>{feature_items}</ul>
  <p><a href="{e(cta_url, quote=True)}">Book a call</a></p>
</body>
</html>"""
    return ComposedMessage(subject=subject, text=text, html=body, cta_url=cta_url)


async def send_report_email(
    sink: NotificationSink | None,
    to: str,
    report: Report,
    identity: SiteIdentity,
    business_name: str,
    recommendation: Recommendation,
    settings: Settings,
) -> bool:
    """Compose and send. Never raises; returns whether the sink accepted the message."""
    if sink is None:
        log.warning("Skipping report email to %s: %s", to, NotificationSinkUnavailable())
        return False
    try:
        message = compose_report_message(report, identity, business_name, recommendation, settings)
        if message is None:
            log.warning("Skipping report email to %s: message could not be composed", to)
            return False
        return await sink.send(to, message.subject, message.text, message.html,
                               bcc=settings.email_bcc or None)
    except Exception as exc:
        log.warning("Report email to %s failed: %s", to, exc)
        return False
