"""Tests for dereferrer matching and target extraction."""

import pytest

from safelink.dereferrer import decode_base64, extract_target, looks_like_base64
from safelink.schemas.lists import DereferrerRule


# ------------------------------------------------------------------
# Query-parameter rules (prefix match)
# ------------------------------------------------------------------


class TestParamRules:
    def test_named_param(self):
        rule = DereferrerRule(path="/out", param=["url"], format=["base64"])
        assert extract_target("/out", "url=aHR0cHM6Ly9ldmlsLmNvbQ==", rule) == "aHR0cHM6Ly9ldmlsLmNvbQ=="

    def test_first_present_param_wins(self):
        rule = DereferrerRule(path="google.com/url", param=["q", "url"])
        query = "sa=t&url=https%3A%2F%2Fb.example%2F&q=https%3A%2F%2Fa.example%2F"
        assert extract_target("google.com/url", query, rule) == "https://a.example/"

    def test_falls_back_to_later_param(self):
        rule = DereferrerRule(path="google.com/url", param=["q", "url"])
        assert extract_target("google.com/url", "url=https%3A%2F%2Fb.example", rule) == "https://b.example"

    def test_no_listed_param_present(self):
        rule = DereferrerRule(path="google.com/url", param=["q"])
        assert extract_target("google.com/url", "other=1", rule) is None

    def test_missing_query(self):
        rule = DereferrerRule(path="google.com/url", param=["q"])
        assert extract_target("google.com/url", None, rule) is None

    def test_param_true_returns_whole_query(self):
        rule = DereferrerRule(path="deref.example", param=True)
        assert extract_target("deref.example", "https://target.example/x", rule) == "https://target.example/x"

    def test_param_rule_matches_as_prefix(self):
        rule = DereferrerRule(path="/out", param=["url"])
        assert extract_target("/out/extra", "url=x", rule) == "x"

    def test_param_rule_requires_prefix_at_start(self):
        rule = DereferrerRule(path="/out", param=["url"])
        assert extract_target("/a/out", "url=x", rule) is None

    def test_regex_param_rule(self):
        rule = DereferrerRule(path=r"/l\.(facebook|messenger)\.com\/l\.php/", param=["u"])
        assert extract_target("l.messenger.com/l.php", "u=https%3A%2F%2Fx.example", rule) == "https://x.example"


# ------------------------------------------------------------------
# Path-tail rules (exact match up to a "/" boundary)
# ------------------------------------------------------------------


class TestPathRules:
    def test_tail_after_prefix(self):
        rule = DereferrerRule(path="deref.example/go")
        assert extract_target("deref.example/go/https://target.example/x", None, rule) == (
            "https://target.example/x"
        )

    def test_prefix_plus_tail_is_full_path(self):
        rule = DereferrerRule(path="deref.example/go")
        path = "deref.example/go/abc/def"
        target = extract_target(path, None, rule)
        assert rule.path + "/" + target == path

    def test_rejects_partial_segment(self):
        rule = DereferrerRule(path="deref.example/go")
        assert extract_target("deref.example/gone/abc", None, rule) is None

    def test_exact_path_without_tail(self):
        rule = DereferrerRule(path="deref.example/go")
        assert extract_target("deref.example/go", None, rule) is None

    def test_regex_tail(self):
        rule = DereferrerRule(path=r"/deref\.example\/r\d+/")
        assert extract_target("deref.example/r42/aHR0cHM6Ly9ldmlsLmNvbQ", None, rule) == (
            "aHR0cHM6Ly9ldmlsLmNvbQ"
        )

    def test_no_match(self):
        rule = DereferrerRule(path="deref.example/go")
        assert extract_target("other.example/go/x", None, rule) is None

    def test_invalid_regex_is_no_match(self):
        rule = DereferrerRule(path="/deref(/")
        assert extract_target("deref(/x", None, rule) is None


# ------------------------------------------------------------------
# base64 helpers
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "value,expected",
    [
        ("aHR0cHM6Ly9ldmlsLmNvbQ==", True),
        ("YWJj", True),
        ("abc+/=", True),
        ("https://evil.com", False),
        ("abc===", False),
        ("", False),
    ],
)
def test_looks_like_base64(value, expected):
    assert looks_like_base64(value) is expected


def test_decode_base64():
    assert decode_base64("aHR0cHM6Ly9ldmlsLmNvbQ==") == "https://evil.com"


def test_decode_base64_bad_padding():
    assert decode_base64("abcde") is None


def test_decode_base64_not_utf8():
    assert decode_base64("/w==") is None
