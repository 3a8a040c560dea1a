"""Tests for bearer-credential verification."""

import pytest
from libs.auth.verifier import IdentityVerifier
from libs.common.errors import Unauthenticated
from tests.factories import TEST_JWT_SECRET, auth_headers, make_token


@pytest.mark.unit
def test_verify_valid_token():
    verifier = IdentityVerifier(TEST_JWT_SECRET)

    user = verifier.verify(make_token("user-1", email="ada@example.com"))

    assert user.user_id == "user-1"
    assert user.email == "ada@example.com"
    assert user.email_verified is False


@pytest.mark.unit
def test_email_verified_read_from_user_metadata():
    verifier = IdentityVerifier(TEST_JWT_SECRET)

    user = verifier.verify(
        make_token("user-1", user_metadata={"email_verified": True})
    )

    assert user.email_verified is True


@pytest.mark.unit
@pytest.mark.parametrize(
    "token, message",
    [
        (make_token("user-1", expires_in=-60), "Token expired"),
        (make_token("user-1", secret="wrong-secret"), "Could not validate credentials"),
        ("not-a-jwt", "Could not validate credentials"),
        (make_token(""), "Could not validate credentials"),
    ],
)
def test_invalid_tokens_rejected(token, message):
    with pytest.raises(Unauthenticated) as exc_info:
        IdentityVerifier(TEST_JWT_SECRET).verify(token)

    assert exc_info.value.message == message


@pytest.mark.unit
def test_audience_enforced_when_configured():
    verifier = IdentityVerifier(TEST_JWT_SECRET, audience="authenticated")
    assert verifier.verify(make_token("user-1")).user_id == "user-1"

    strict = IdentityVerifier(TEST_JWT_SECRET, audience="service_role")
    with pytest.raises(Unauthenticated):
        strict.verify(make_token("user-1"))


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer "},
        {"Authorization": "Bearer garbage"},
        auth_headers("user-1", secret="wrong-secret"),
        auth_headers("user-1", expires_in=-10),
    ],
)
async def test_protected_endpoints_return_401(client, headers):
    response = await client.get("/user/tokens", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"
    assert response.headers["WWW-Authenticate"] == "Bearer"
