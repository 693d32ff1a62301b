"""Tests for visitor identity resolution."""

import hashlib

import pytest

from chat_usage.auth.hashing import generate_visitor_id, hash_visitor_fingerprint
from chat_usage.auth.identity import (
    DEV_USAGE_SALT,
    VisitorIdentityResolver,
    build_visitor_identity,
    resolve_client_ip,
    resolve_usage_salt,
)
from chat_usage.core.errors import ConfigurationError


def _guest(ip="", user_agent="Mozilla/5.0", visitor_id="visitor-1", salt="salt"):
    return build_visitor_identity(
        ip=ip, user_agent=user_agent, visitor_id=visitor_id, salt=salt
    )


class TestBuildVisitorIdentity:
    def test_authenticated_user_wins(self):
        identity = build_visitor_identity(
            ip="203.0.113.7",
            user_agent="Mozilla/5.0",
            visitor_id="visitor-1",
            salt="salt",
            auth_user_id="user_abc",
        )
        assert identity.subject == "user_abc"
        assert identity.tier == "authenticated"
        assert identity.is_authenticated is True

    @pytest.mark.parametrize("ip,visitor_id", [("", ""), ("10.0.0.1", "v"), ("", "v")])
    def test_tier_dominance_regardless_of_other_inputs(self, ip, visitor_id):
        identity = build_visitor_identity(
            ip=ip, user_agent="", visitor_id=visitor_id, salt="salt", auth_user_id="u1"
        )
        assert identity.tier == "authenticated"

    def test_empty_auth_user_id_is_guest(self):
        identity = build_visitor_identity(
            ip="", user_agent="ua", visitor_id="v", salt="salt", auth_user_id=""
        )
        assert identity.tier == "guest"

    def test_same_inputs_same_subject(self):
        assert _guest(ip="198.51.100.2") == _guest(ip="198.51.100.2")
        assert _guest() == _guest()

    def test_guest_subject_is_sha256_hex(self):
        identity = _guest(ip="198.51.100.2", user_agent="ua", salt="s")
        expected = hashlib.sha256("\x00".join(["s", "198.51.100.2", "ua"]).encode()).hexdigest()
        assert identity.subject == expected
        assert identity.tier == "guest"

    def test_delimiter_prevents_concatenation_collisions(self):
        first = _guest(ip="ab", user_agent="c")
        second = _guest(ip="a", user_agent="bc")
        assert first.subject != second.subject

    def test_empty_ip_uses_visitor_id(self):
        one = _guest(ip="", visitor_id="visitor-1")
        two = _guest(ip="", visitor_id="visitor-2")
        assert one.subject != two.subject
        assert one.subject == hash_visitor_fingerprint("salt", "visitor-1", "Mozilla/5.0")

    def test_ip_seed_ignores_visitor_id(self):
        one = _guest(ip="198.51.100.2", visitor_id="visitor-1")
        two = _guest(ip="198.51.100.2", visitor_id="visitor-2")
        assert one.subject == two.subject

    def test_whitespace_ip_falls_back_to_visitor_id(self):
        assert _guest(ip="   ", visitor_id="v") == _guest(ip="", visitor_id="v")

    def test_ip_is_trimmed(self):
        assert _guest(ip=" 198.51.100.2 ") == _guest(ip="198.51.100.2")

    def test_salt_changes_subject(self):
        assert _guest(salt="one").subject != _guest(salt="two").subject


class TestResolveClientIp:
    def test_untrusted_ignores_headers(self):
        ip = resolve_client_ip(
            forwarded_for="203.0.113.7", real_ip="203.0.113.8", trusted_proxy=False
        )
        assert ip == ""

    def test_trusted_uses_first_forwarded_entry(self):
        ip = resolve_client_ip(
            forwarded_for=" 203.0.113.7 , 10.0.0.1",
            real_ip="203.0.113.8",
            trusted_proxy=True,
        )
        assert ip == "203.0.113.7"

    def test_trusted_falls_back_to_real_ip(self):
        ip = resolve_client_ip(forwarded_for=None, real_ip="203.0.113.8", trusted_proxy=True)
        assert ip == "203.0.113.8"

    def test_trusted_empty_forwarded_falls_back_to_real_ip(self):
        ip = resolve_client_ip(forwarded_for=" , ", real_ip="203.0.113.8", trusted_proxy=True)
        assert ip == "203.0.113.8"

    def test_trusted_without_headers_is_empty(self):
        assert resolve_client_ip(forwarded_for=None, real_ip=None, trusted_proxy=True) == ""


class TestSaltResolution:
    def test_configured_salt_is_used(self, settings_factory):
        assert resolve_usage_salt(settings_factory(USAGE_SALT="  pepper ")) == "pepper"

    def test_missing_salt_in_dev_uses_dev_constant(self, settings_factory):
        assert resolve_usage_salt(settings_factory(USAGE_SALT="")) == DEV_USAGE_SALT

    @pytest.mark.parametrize("environment", ["prod", "production", "Production"])
    def test_missing_salt_in_production_fails(self, settings_factory, environment):
        app_settings = settings_factory(USAGE_SALT="", ENVIRONMENT=environment)
        with pytest.raises(ConfigurationError, match="USAGE_SALT"):
            VisitorIdentityResolver.from_settings(app_settings)

    def test_resolver_rejects_empty_salt(self):
        with pytest.raises(ConfigurationError):
            VisitorIdentityResolver("")

    def test_resolver_is_deterministic(self, settings_factory):
        resolver = VisitorIdentityResolver.from_settings(settings_factory())
        first = resolver.build(ip="", user_agent="ua", visitor_id="v")
        second = resolver.build(ip="", user_agent="ua", visitor_id="v")
        assert first == second


def test_generate_visitor_id_is_unique_uuid():
    first, second = generate_visitor_id(), generate_visitor_id()
    assert first != second
    assert len(first) == 36
