"""Recommendation engine: deterministic mapping from a report score to a priced package.

Tiers
-----
- ``score >= 85``       -> Starter  (site is in good shape, small tune-up)
- ``60 <= score < 85``  -> Business
- ``score < 60``        -> Premium  (largest rebuild)
- absent / non-finite   -> Business

The discount is global: one percentage, one code, one validity window. Prices
are rounded half-up to cents with ``Decimal`` so the same score always yields
byte-identical output.
"""
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from beacon.errors import RecommendationInputInvalid

log = logging.getLogger(__name__)


class Tier(str, Enum):
    STARTER = "Starter"
    BUSINESS = "Business"
    PREMIUM = "Premium"


STARTER_MIN_SCORE = 85
BUSINESS_MIN_SCORE = 60
DEFAULT_TIER = Tier.BUSINESS

DISCOUNT_PERCENT = 15
DISCOUNT_CODE = "BEACON15"
DISCOUNT_VALIDITY_HOURS = 48


@dataclass(frozen=True)
class Package:
    name: str
    base_price: int
    features: tuple[str, ...]


CATALOG: dict[Tier, Package] = {
    Tier.STARTER: Package(
        name="Starter Tune-Up",
        base_price=299,
        features=(
            "Speed and performance improvements",
            "Title, meta description and heading fixes",
            "Conversion focused CTA tweaks",
        ),
    ),
    Tier.BUSINESS: Package(
        name="Business Growth Package",
        base_price=499,
        features=(
            "Full on-page SEO cleanup (titles, meta, H1/H2/H3)",
            "Mobile layout and speed optimization",
            "Clear calls to action on key pages",
            "Basic analytics and tracking setup",
        ),
    ),
    Tier.PREMIUM: Package(
        name="Premium Website Rebuild",
        base_price=899,
        features=(
            "Modern redesign of core pages",
            "Technical SEO foundation and structured content",
            "Performance tuned hosting setup",
            "Conversion focused copy and layout",
            "30 days of post-launch support",
        ),
    ),
}


@dataclass(frozen=True)
class Recommendation:
    tier: Tier
    package_name: str
    base_price: float
    discount_percent: int
    discounted_price: float
    code: str
    validity_hours: int
    features: tuple[str, ...]

    @property
    def urgency(self) -> str:
        return (
            f"Use code {self.code} within {self.validity_hours} hours "
            f"to save {self.discount_percent}%."
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tier"] = self.tier.value
        data["features"] = list(self.features)
        data["urgency"] = self.urgency
        return data


def discounted(base_price: float | int, percent: int = DISCOUNT_PERCENT) -> float:
    value = Decimal(str(base_price)) * (Decimal(100) - Decimal(percent)) / Decimal(100)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _coerce_score(score: Any) -> float | None:
    if score is None:
        return None
    if isinstance(score, bool):
        raise RecommendationInputInvalid(f"Score must be numeric, got {score!r}")
    try:
        value = float(score)
    except (TypeError, ValueError) as exc:
        raise RecommendationInputInvalid(f"Score must be numeric, got {score!r}") from exc
    if not math.isfinite(value):
        raise RecommendationInputInvalid(f"Score must be finite, got {score!r}")
    return value


def tier_for(score: Any) -> Tier:
    try:
        value = _coerce_score(score)
    except RecommendationInputInvalid as exc:
        log.warning("%s; using %s tier", exc, DEFAULT_TIER.value)
        return DEFAULT_TIER
    if value is None:
        return DEFAULT_TIER
    if value >= STARTER_MIN_SCORE:
        return Tier.STARTER
    if value >= BUSINESS_MIN_SCORE:
        return Tier.BUSINESS
    return Tier.PREMIUM


def recommend(score: Any) -> Recommendation:
    tier = tier_for(score)
    package = CATALOG[tier]
    return Recommendation(
        tier=tier,
        package_name=package.name,
        base_price=float(package.base_price),
        discount_percent=DISCOUNT_PERCENT,
        discounted_price=discounted(package.base_price),
        code=DISCOUNT_CODE,
        validity_hours=DISCOUNT_VALIDITY_HOURS,
        features=package.features,
    )


# ---------------------------------------------------------------------------
# Report presentation helpers
# ---------------------------------------------------------------------------

_SEVERITY_PENALTY = {"high": 20, "medium": 10, "low": 5}


def build_issues(report: Any) -> list[dict[str, str]]:
    """Basic on-page issues from a report's title/meta/H1 fields.

    Accepts a Report row or a plain dict; absent fields are treated as missing.
    """
    def field(name: str) -> Any:
        if isinstance(report, dict):
            return report.get(name)
        return getattr(report, name, None)

    issues: list[dict[str, str]] = []
    if not (field("title") or "").strip():
        issues.append({"key": "title_missing", "label": "Missing page title (<title>)", "severity": "high"})
    if not (field("meta_description") or "").strip():
        issues.append({"key": "meta_missing", "label": "Missing meta description", "severity": "medium"})

    h1_raw = field("h1_count")
    try:
        h1 = int(h1_raw) if h1_raw is not None else None
    except (TypeError, ValueError):
        h1 = None
    if h1 is None:
        issues.append({"key": "h1_unknown", "label": "Could not detect H1 count", "severity": "low"})
    elif h1 == 0:
        issues.append({"key": "h1_missing", "label": "No H1 found (add one clear page headline)", "severity": "high"})
    elif h1 > 1:
        issues.append({"key": "h1_multiple",
                       "label": f"Multiple H1 tags found ({h1}). Use one main H1.", "severity": "medium"})
    return issues


def score_from_issues(issues: list[dict[str, str]]) -> int:
    score = 100
    for issue in issues:
        score -= _SEVERITY_PENALTY.get(issue.get("severity", ""), 5)
    return max(0, min(100, score))


def score_label(score: Any) -> str:
    try:
        value = _coerce_score(score)
    except RecommendationInputInvalid:
        value = None
    if value is None:
        return "Not scored"
    if value >= 90:
        return "Excellent"
    if value >= 70:
        return "Good"
    if value >= 50:
        return "Needs Work"
    return "High Priority"
