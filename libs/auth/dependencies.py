from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from libs.auth.models import AuthUser
from libs.auth.verifier import IdentityVerifier
from libs.common.errors import ConfigurationError, Unauthenticated

# auto_error=False so a missing header surfaces as our own Unauthenticated error
security = HTTPBearer(auto_error=False)


def get_identity_verifier(request: Request) -> IdentityVerifier:
    verifier = getattr(request.app.state, "identity_verifier", None)
    if verifier is None:
        raise ConfigurationError("Identity verifier is not configured")
    return verifier


async def get_current_user(
    request: Request,
    token: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    verifier: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
) -> AuthUser:
    """
    Validate the identity-provider bearer token and return the authenticated user.
    """
    if token is None or not token.credentials:
        raise Unauthenticated()

    user = verifier.verify(token.credentials)
    # Used by the rate limiter key function
    request.state.user = user
    return user


CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
