"""Identity verification for bearer credentials issued by the identity provider."""

from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import Settings
from libs.common.errors import Unauthenticated
from libs.common.logging import get_logger

logger = get_logger(__name__)


class IdentityVerifier:
    """Validates identity-provider JWTs and yields the authenticated user.

    One instance is built at startup from settings and shared through
    ``app.state.identity_verifier``.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        if not secret:
            raise ValueError("An identity provider secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience
        self._issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityVerifier":
        return cls(
            settings.AUTH_JWT_SECRET,
            algorithm=settings.AUTH_JWT_ALGORITHM,
            audience=settings.AUTH_JWT_AUDIENCE,
            issuer=settings.AUTH_JWT_ISSUER,
        )

    def verify(self, token: str) -> AuthUser:
        """Decode and validate ``token``.

        Raises Unauthenticated for any expired, malformed or mis-signed token.
        """
        if not token or not token.strip():
            raise Unauthenticated()

        try:
            payload = jwt.decode(
                token.strip(),
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_aud": self._audience is not None},
            )
            # Supabase keeps the verification flag in user_metadata
            metadata = payload.get("user_metadata") or {}
            payload.setdefault("email_verified", bool(metadata.get("email_verified")))
            return AuthUser(**payload)
        except ExpiredSignatureError:
            raise Unauthenticated("Token expired")
        except (JWTError, ValidationError) as exc:
            logger.info("Rejected bearer credential: %s", type(exc).__name__)
            raise Unauthenticated("Could not validate credentials")
