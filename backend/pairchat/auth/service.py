"""Bearer token verification (HS256 JWT).

Tokens are issued by the identity service that shares ``jwt.secret_key``
with this gateway; ``issue()`` exists for provisioning scripts and tests.
The ``sub`` claim carries the user identity.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

logger = logging.getLogger(__name__)


class InvalidCredential(Exception):
    """The credential is malformed, expired, or carries a bad signature."""


class TokenService:
    """Mints and verifies identity tokens."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, user_id: str, expires_in: Optional[timedelta] = None) -> str:
        """Mint a token whose subject is ``user_id``."""
        now = datetime.now(timezone.utc)
        claims = {
            "sub": user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + (expires_in or timedelta(minutes=self.expire_minutes))).timestamp()),
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify(self, credential: str) -> str:
        """Return the identity carried by ``credential``.

        Raises:
            InvalidCredential: For any malformed, expired or forged token, or
                one without a string subject.
        """
        try:
            claims = jwt.decode(credential, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise InvalidCredential(str(e)) from e

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidCredential("token has no subject")
        return subject


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
