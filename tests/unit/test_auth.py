from __future__ import annotations

import time

import jwt
import pytest

from community_chat.application.exceptions import AuthenticationError
from community_chat.infrastructure.auth.claims import principal_from_claims
from community_chat.infrastructure.auth.hs256_verifier import HS256Verifier

SECRET = "unit-test-secret-with-enough-length-for-hs256"


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.mark.asyncio
async def test_valid_token_yields_principal():
    principal = await HS256Verifier(SECRET).verify(_token({"sub": "U1", "community_id": "A1"}))

    assert principal.user_id == "U1"
    assert principal.community_id == "A1"
    assert principal.is_complete


@pytest.mark.asyncio
async def test_wrong_signature_is_authentication_error():
    token = _token({"sub": "U1", "community_id": "A1"}, secret="another-secret-of-sufficient-length!!")

    with pytest.raises(AuthenticationError):
        await HS256Verifier(SECRET).verify(token)


@pytest.mark.asyncio
async def test_expired_token_is_authentication_error():
    token = _token({"sub": "U1", "community_id": "A1", "exp": int(time.time()) - 60})

    with pytest.raises(AuthenticationError):
        await HS256Verifier(SECRET).verify(token)


@pytest.mark.asyncio
async def test_garbage_token_is_authentication_error():
    with pytest.raises(AuthenticationError):
        await HS256Verifier(SECRET).verify("not-a-jwt")


def test_claim_aliases():
    principal = principal_from_claims({"user_id": "U1", "abune_id": "A1"})

    assert (principal.user_id, principal.community_id) == ("U1", "A1")


def test_missing_community_claim_gives_incomplete_principal():
    principal = principal_from_claims({"sub": "U1"})

    assert principal.community_id == ""
    assert not principal.is_complete
