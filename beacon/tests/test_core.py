"""Tests for the pure pieces: site identity, recommendation engine, report helpers."""
from __future__ import annotations

import math

import pytest

from beacon.errors import InvalidIdentity
from beacon.identity import fingerprint, normalize, normalize_domain
from beacon.recommend import (
    CATALOG,
    DISCOUNT_CODE,
    DISCOUNT_VALIDITY_HOURS,
    Tier,
    build_issues,
    discounted,
    recommend,
    score_from_issues,
    score_label,
)


# ---------------------------------------------------------------------------
# Tests: identity
# ---------------------------------------------------------------------------


class TestNormalize:
    @pytest.mark.parametrize("raw", [
        "example.com",
        "https://example.com",
        "http://example.com",
        "HTTPS://WWW.Example.COM",
        "www.example.com/pricing?utm_source=x",
        "  https://www.example.com:8443/a/b#frag  ",
    ])
    def test_variants_collapse_to_one_identity(self, raw):
        ident = normalize(raw)
        assert ident.domain == "example.com"
        assert ident.fingerprint == normalize("example.com").fingerprint

    def test_only_leading_www_label_is_stripped(self):
        assert normalize_domain("www.www.example.com") == "www.example.com"
        assert normalize_domain("wwwexample.com") == "wwwexample.com"
        assert normalize_domain("shop.www.example.com") == "shop.www.example.com"

    def test_subdomains_are_distinct(self):
        assert normalize("blog.example.com").fingerprint != normalize("example.com").fingerprint

    @pytest.mark.parametrize("raw", [None, "", "   ", "https://", "http://www.", "exa mple.com", "http://[::1"])
    def test_invalid_input_raises(self, raw):
        with pytest.raises(InvalidIdentity):
            normalize(raw)

    def test_fingerprint_is_sha256_hex(self):
        fp = fingerprint("example.com")
        assert len(fp) == 64
        assert fp == fingerprint("example.com")
        assert fp != fingerprint("example.org")
        assert int(fp, 16) >= 0


# ---------------------------------------------------------------------------
# Tests: recommendation engine
# ---------------------------------------------------------------------------


class TestRecommend:
    @pytest.mark.parametrize("score,tier", [
        (100, Tier.STARTER), (85, Tier.STARTER),
        (84, Tier.BUSINESS), (84.9, Tier.BUSINESS), (60, Tier.BUSINESS),
        (59, Tier.PREMIUM), (0, Tier.PREMIUM),
        (None, Tier.BUSINESS),
    ])
    def test_tier_boundaries(self, score, tier):
        assert recommend(score).tier == tier

    def test_discount_math(self):
        rec = recommend(70)
        assert rec.base_price == 499
        assert rec.discount_percent == 15
        assert rec.discounted_price == 424.15
        assert recommend(90).discounted_price == 254.15
        assert recommend(10).discounted_price == 764.15

    def test_half_up_rounding(self):
        assert discounted(0.05, 50) == 0.03
        assert discounted(1.005, 0) == 1.01

    def test_idempotent(self):
        assert recommend(72) == recommend(72)
        assert recommend(72).to_dict() == recommend(72).to_dict()

    def test_global_discount_not_tier_dependent(self):
        recs = [recommend(s) for s in (95, 70, 20)]
        assert {r.code for r in recs} == {DISCOUNT_CODE}
        assert {r.validity_hours for r in recs} == {DISCOUNT_VALIDITY_HOURS}
        assert {r.discount_percent for r in recs} == {15}

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf, "abc", True, object()])
    def test_invalid_input_falls_back_to_default_tier(self, bad):
        assert recommend(bad).tier == Tier.BUSINESS

    def test_numeric_string_is_accepted(self):
        assert recommend("90").tier == Tier.STARTER

    def test_to_dict_shape(self):
        data = recommend(50).to_dict()
        assert data["tier"] == "Premium"
        assert data["package_name"] == CATALOG[Tier.PREMIUM].name
        assert data["features"] == list(CATALOG[Tier.PREMIUM].features)
        assert "48 hours" in data["urgency"]


# ---------------------------------------------------------------------------
# Tests: issues and labels
# ---------------------------------------------------------------------------


class TestIssues:
    def test_clean_page_has_no_issues(self):
        issues = build_issues({"title": "Acme", "meta_description": "We sell", "h1_count": 1})
        assert issues == []
        assert score_from_issues(issues) == 100

    def test_missing_everything(self):
        issues = build_issues({})
        keys = [i["key"] for i in issues]
        assert keys == ["title_missing", "meta_missing", "h1_unknown"]
        assert score_from_issues(issues) == 100 - 20 - 10 - 5

    def test_h1_variants(self):
        base = {"title": "t", "meta_description": "m"}
        assert build_issues({**base, "h1_count": 0})[0]["key"] == "h1_missing"
        multi = build_issues({**base, "h1_count": 3})
        assert multi[0]["key"] == "h1_multiple"
        assert "(3)" in multi[0]["label"]

    def test_score_clamped(self):
        issues = [{"severity": "high"}] * 10
        assert score_from_issues(issues) == 0

    @pytest.mark.parametrize("score,label", [
        (95, "Excellent"), (90, "Excellent"), (70, "Good"), (50, "Needs Work"),
        (49, "High Priority"), (None, "Not scored"),
    ])
    def test_score_label(self, score, label):
        assert score_label(score) == label
