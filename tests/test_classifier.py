"""Tests for URL classification (safelink/classifier.py)."""

import pytest

from safelink.classifier import classify, find_dereferrer_target, find_similar
from safelink.filters import SuspiciousFilter
from safelink.register import ClassificationIndex, RedirectIndex, TrustedIndex
from safelink.schemas.domain import DomainType
from safelink.schemas.lists import DereferrerRule

# "https://evil.com"
EVIL_B64 = "aHR0cHM6Ly9ldmlsLmNvbQ=="


@pytest.fixture()
def index() -> ClassificationIndex:
    return ClassificationIndex(
        generation=1,
        trusted=TrustedIndex(
            orgs={"bank1": {"name": "Bank", "country": "DE"}},
            domains={"bank-example.com": "bank1", "shop-example.org": "shop1"},
        ),
        redirect=RedirectIndex(
            redirects=["bit.ly", "bank-example.com", "phish-login.com"],
            dereferrers=[
                DereferrerRule(path="go.example.net/out", param=["url"], format=["base64"]),
                DereferrerRule(path="go.example.net/out", param=["fallback"]),
                DereferrerRule(path="deref.example.net/go"),
            ],
        ),
        suspicious=SuspiciousFilter.parse("||phish-login.com^\n||evil-login.net^\n"),
    )


# ------------------------------------------------------------------
# Categories
# ------------------------------------------------------------------


class TestClassify:
    def test_trusted_with_org_details(self, index):
        info = classify("https://login.bank-example.com/account", index)
        assert info.type == DomainType.TRUSTED
        assert info.domain == "bank-example.com"
        assert info.second_level_domain == "bank-example"
        assert info.top_level_domain == "com"
        assert info.name == "Bank"
        assert info.country == "DE"

    def test_trusted_without_org_entry(self, index):
        info = classify("https://shop-example.org/", index)
        assert info.type == DomainType.TRUSTED
        assert info.model_extra == {}

    def test_org_details_cannot_override_core_fields(self):
        index = ClassificationIndex(
            trusted=TrustedIndex(
                orgs={"o": {"name": "O", "type": "suspicious", "domain": "other.com"}},
                domains={"bank-example.com": "o"},
            )
        )
        info = classify("https://bank-example.com", index)
        assert info.type == DomainType.TRUSTED
        assert info.domain == "bank-example.com"
        assert info.name == "O"

    def test_redirect_host(self, index):
        info = classify("https://bit.ly/3xYz", index)
        assert info.type == DomainType.REDIRECT
        assert info.dereferrer_target is None

    def test_dereferrer_base64_target(self, index):
        info = classify(f"https://go.example.net/out?url={EVIL_B64}", index)
        assert info.type == DomainType.REDIRECT
        assert info.dereferrer_target == "https://evil.com"

    def test_dereferrer_path_target(self, index):
        info = classify("https://deref.example.net/go/https://target.example/page", index)
        assert info.type == DomainType.REDIRECT
        assert info.dereferrer_target == "https://target.example/page"

    def test_suspicious(self, index):
        info = classify("https://evil-login.net/verify", index)
        assert info.type == DomainType.SUSPICIOUS
        assert info.domain == "evil-login.net"

    def test_unknown_reports_similar(self, index):
        info = classify("https://bank-exarnple.com/login", index)
        assert info.type == DomainType.UNKNOWN
        assert info.similar is not None
        assert info.similar.domain == "bank-example.com"
        assert 0.0 < info.similar.rating < 1.0

    def test_unknown_with_no_trusted_domains(self):
        info = classify("https://anything.com", ClassificationIndex())
        assert info.type == DomainType.UNKNOWN
        assert info.similar is None

    def test_multi_part_suffix(self, index):
        info = classify("https://www.example.co.uk/", index)
        assert info.domain == "example.co.uk"
        assert info.second_level_domain == "example"
        assert info.top_level_domain == "co.uk"


# ------------------------------------------------------------------
# Priority
# ------------------------------------------------------------------


class TestPriority:
    def test_custom_beats_trusted(self, index):
        info = classify("https://bank-example.com", index, custom={"bank-example.com": True})
        assert info.type == DomainType.CUSTOM

    def test_falsy_custom_entry_is_ignored(self, index):
        info = classify("https://bank-example.com", index, custom={"bank-example.com": False})
        assert info.type == DomainType.TRUSTED

    def test_custom_for_unknown_domain(self, index):
        info = classify("https://my-homelab.dev", index, custom={"my-homelab.dev": True})
        assert info.type == DomainType.CUSTOM
        assert info.similar is None

    def test_trusted_beats_redirect(self, index):
        assert classify("https://bank-example.com", index).type == DomainType.TRUSTED

    def test_redirect_beats_suspicious(self, index):
        assert classify("https://phish-login.com/x", index).type == DomainType.REDIRECT


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


class TestDereferrerTarget:
    def test_undecodable_base64_falls_through_to_next_rule(self, index):
        # "abcd" looks like base64 but is not UTF-8 once decoded
        url = "https://go.example.net/out?url=abcd&fallback=https%3A%2F%2Fsafe.example"
        assert find_dereferrer_target(url, index) == "https://safe.example"

    def test_non_base64_target_returned_as_is(self, index):
        url = "https://go.example.net/out?url=https%3A%2F%2Fplain.example"
        assert find_dereferrer_target(url, index) == "https://plain.example"

    def test_no_rule_applies(self, index):
        assert find_dereferrer_target("https://example.com/out?url=x", index) is None


class TestFindSimilar:
    def test_picks_closest(self):
        similar = find_similar("paypa1.com", ["paypal.com", "example.org"])
        assert similar.domain == "paypal.com"
        assert similar.rating == pytest.approx(0.9)

    def test_identical_is_full_rating(self):
        assert find_similar("a.com", ["a.com"]).rating == 1.0

    def test_no_candidates(self):
        assert find_similar("a.com", []) is None
