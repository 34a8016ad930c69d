"""Tests for token issuing/verification and password hashing."""
import time
from datetime import timedelta

import pytest
from jose import jwt

from crm_api.core.config import settings
from crm_api.core.exceptions import InvalidTokenError, TokenFailure
from crm_api.core.security import (
    hash_password, hash_token, issue_token, verify_password,
    verify_token, verify_token_ignoring_expiry,
)

CLAIMS = {"id": 7, "email": "dana@example.com", "role": "Manager", "branch": "NYC"}


def _payload(**overrides):
    now = int(time.time())
    payload = {
        "sub": "7",
        "email": "dana@example.com",
        "role": "Manager",
        "branch": "NYC",
        "iat": now,
        "exp": now + 3600,
        "type": "access",
    }
    payload.update(overrides)
    return payload


def _failure(token, verify=verify_token):
    with pytest.raises(InvalidTokenError) as exc_info:
        verify(token)
    return exc_info.value.reason


class TestTokens:

    def test_round_trip(self):
        claims = verify_token(issue_token(CLAIMS))
        assert claims.as_identity_claims() == CLAIMS
        assert claims.expires_at - claims.issued_at == settings.JWT_EXPIRY_MINUTES * 60

    def test_branch_may_be_absent(self):
        claims = verify_token(issue_token({"id": 1, "email": "root@example.com", "role": "Super Admin"}))
        assert claims.branch is None

    def test_custom_ttl(self):
        claims = verify_token(issue_token(CLAIMS, ttl=timedelta(minutes=5)))
        assert claims.expires_at - claims.issued_at == 300

    def test_tokens_are_unique(self):
        assert issue_token(CLAIMS) != issue_token(CLAIMS)

    @pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-10)])
    def test_expired(self, ttl):
        token = issue_token(CLAIMS, ttl=ttl)
        assert _failure(token) == TokenFailure.expired

    def test_expired_message(self):
        with pytest.raises(InvalidTokenError, match="Token expired"):
            verify_token(issue_token(CLAIMS, ttl=timedelta(seconds=-1)))

    def test_wrong_secret(self):
        token = jwt.encode(_payload(), "not-the-secret", algorithm=settings.JWT_ALGORITHM)
        assert _failure(token) == TokenFailure.signature_invalid

    def test_tampered_payload(self):
        header, _, signature = issue_token(CLAIMS).split(".")
        forged = jwt.encode(_payload(role="Super Admin"), "x", algorithm="HS256").split(".")[1]
        assert _failure(".".join([header, forged, signature])) == TokenFailure.signature_invalid

    def test_signature_checked_before_expiry(self):
        token = jwt.encode(_payload(exp=int(time.time()) - 60), "not-the-secret", algorithm="HS256")
        assert _failure(token) == TokenFailure.signature_invalid

    @pytest.mark.parametrize("token", ["garbage", "a.b", "", "a.b.c"])
    def test_malformed(self, token):
        assert _failure(token) == TokenFailure.malformed

    def test_wrong_token_type(self):
        token = jwt.encode(_payload(type="refresh"), settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        assert _failure(token) == TokenFailure.malformed

    def test_missing_claims(self):
        payload = _payload()
        del payload["email"]
        token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        assert _failure(token) == TokenFailure.malformed

    def test_non_numeric_subject(self):
        token = jwt.encode(_payload(sub="dana"), settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        assert _failure(token) == TokenFailure.malformed

    def test_ignoring_expiry_accepts_expired_token(self):
        token = issue_token(CLAIMS, ttl=timedelta(seconds=-30))
        claims = verify_token_ignoring_expiry(token)
        assert claims.id == 7
        assert claims.expires_at < int(time.time())

    def test_ignoring_expiry_still_checks_signature(self):
        token = jwt.encode(_payload(exp=int(time.time()) - 60), "not-the-secret", algorithm="HS256")
        assert _failure(token, verify_token_ignoring_expiry) == TokenFailure.signature_invalid

    def test_token_hash_is_stable(self):
        assert hash_token("abc") == hash_token("abc")
        assert hash_token("abc") != hash_token("abd")
        assert len(hash_token("abc")) == 64


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_unusable_stored_hash(self):
        assert not verify_password("s3cret", "plain-text")
        assert not verify_password("s3cret", "")
        assert not verify_password("s3cret", None)
