"""Identity-provider token verification.

Tokens are issued by the external identity provider and signed with a
shared secret. Claims used here:
  - sub:    user ID (profile.user_id)
  - email:  user email, when the provider includes it
  - aud:    "authenticated" for signed-in users
  - exp:    expiry timestamp

`create_access_token` mints tokens in the same shape; it exists for
local development and tests, not for production sign-in.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from app.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "exp": expire,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[ALGORITHM],
            audience=settings.jwt_audience,
        )
    except JWTError:
        return {}
