from datetime import timedelta

import jwt
import pytest

from src.core.service.auth.jwt_service import TokenError, TokenService
from src.core.service.auth.models.token import TokenErrorKind, TokenType
from src.core.exceptions.base import AuthError

TEST_USER_ID = "3f2c1a9e-6b1d-4c55-8f0e-2d7a9b4c1e01"


def test_create_tokens(token_service):
    """Should create valid access and refresh tokens"""
    tokens = token_service.issue_token_pair(TEST_USER_ID)

    assert tokens.access_token
    assert tokens.refresh_token
    assert tokens.token_type == "bearer"
    assert tokens.expires_in == int(token_service.access_ttl.total_seconds())
    assert tokens.refresh_expires_in == int(token_service.refresh_ttl.total_seconds())

    access_payload = token_service.verify(tokens.access_token, TokenType.ACCESS)
    refresh_payload = token_service.verify(tokens.refresh_token, TokenType.REFRESH)

    assert access_payload.user_id == TEST_USER_ID
    assert refresh_payload.user_id == TEST_USER_ID
    assert access_payload.type == TokenType.ACCESS
    assert refresh_payload.type == TokenType.REFRESH
    assert access_payload.jti != refresh_payload.jti


def test_access_token_expires_after_its_lifetime(token_service, clock):
    token = token_service.issue_access_token(TEST_USER_ID).token

    clock.advance(seconds=token_service.access_ttl.total_seconds() - 1)
    assert token_service.verify(token).user_id == TEST_USER_ID

    clock.advance(seconds=1)
    with pytest.raises(TokenError) as exc_info:
        token_service.verify(token)

    assert exc_info.value.kind == TokenErrorKind.EXPIRED
    assert exc_info.value.status_code == 401
    assert exc_info.value.details == {"reason": "EXPIRED"}


@pytest.mark.parametrize("issued, expected", [
    (TokenType.ACCESS, TokenType.REFRESH),
    (TokenType.REFRESH, TokenType.ACCESS),
])
def test_token_types_are_not_interchangeable(token_service, issued, expected):
    tokens = token_service.issue_token_pair(TEST_USER_ID)
    token = tokens.access_token if issued == TokenType.ACCESS else tokens.refresh_token

    with pytest.raises(TokenError) as exc_info:
        token_service.verify(token, expected)

    assert exc_info.value.kind == TokenErrorKind.WRONG_TYPE


def test_token_signed_with_another_key_is_rejected(token_service, clock):
    other = TokenService(secret_key="another-secret-key-of-sufficient-length", clock=clock)
    token = other.issue_access_token(TEST_USER_ID).token

    with pytest.raises(TokenError) as exc_info:
        token_service.verify(token)

    assert exc_info.value.kind == TokenErrorKind.INVALID_SIGNATURE


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_tokens_are_rejected(token_service, token):
    with pytest.raises(TokenError) as exc_info:
        token_service.verify(token)

    assert exc_info.value.kind == TokenErrorKind.MALFORMED
    assert isinstance(exc_info.value, AuthError)


def test_token_missing_required_claims_is_malformed(token_service, clock):
    token = jwt.encode({"sub": TEST_USER_ID}, token_service.secret_key, algorithm=token_service.algorithm)

    with pytest.raises(TokenError) as exc_info:
        token_service.verify(token)

    assert exc_info.value.kind == TokenErrorKind.MALFORMED


def test_refresh_issues_only_an_access_token(token_service, clock):
    tokens = token_service.issue_token_pair(TEST_USER_ID)

    first = token_service.refresh(tokens.refresh_token)
    clock.advance(minutes=5)
    second = token_service.refresh(tokens.refresh_token)

    assert token_service.verify(first.token, TokenType.ACCESS).user_id == TEST_USER_ID
    assert token_service.verify(second.token, TokenType.ACCESS).user_id == TEST_USER_ID
    assert first.token != second.token
    assert second.expires_at - first.expires_at == timedelta(minutes=5)
    assert not hasattr(first, "refresh_token")


def test_refresh_does_not_extend_the_refresh_token(token_service, clock):
    tokens = token_service.issue_token_pair(TEST_USER_ID)

    clock.advance(seconds=token_service.refresh_ttl.total_seconds())

    with pytest.raises(TokenError) as exc_info:
        token_service.refresh(tokens.refresh_token)

    assert exc_info.value.kind == TokenErrorKind.EXPIRED


def test_refresh_rejects_access_tokens(token_service):
    tokens = token_service.issue_token_pair(TEST_USER_ID)

    with pytest.raises(TokenError) as exc_info:
        token_service.refresh(tokens.access_token)

    assert exc_info.value.kind == TokenErrorKind.WRONG_TYPE


def test_access_lifetime_must_be_shorter_than_refresh_lifetime():
    with pytest.raises(ValueError):
        TokenService(access_ttl=timedelta(days=7), refresh_ttl=timedelta(days=7))
