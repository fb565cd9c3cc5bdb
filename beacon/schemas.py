"""Pydantic request/response schemas for the Beacon API."""
from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class AnalyzeRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    website: str | None = None
    business_name: str | None = Field(
        None, validation_alias=AliasChoices("businessName", "business_name"),
    )
    refresh: bool = False


class EventRequest(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100)
    email: str | None = None
    fingerprint: str | None = None
    domain: str | None = None
    tier: str | None = None
    meta: dict[str, Any] = {}


class ReportOut(BaseModel):
    fingerprint: str
    domain: str
    score: int | None = None
    summary: str = ""
    title: str | None = None
    meta_description: str | None = None
    h1_count: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


class RecommendationOut(BaseModel):
    tier: str
    package_name: str
    base_price: float
    discount_percent: int
    discounted_price: float
    code: str
    validity_hours: int
    features: list[str]
    urgency: str


class AnalyzeResponse(BaseModel):
    ok: bool = True
    cached: bool
    report: ReportOut
    recommendation: RecommendationOut
    score_label: str
