from __future__ import annotations

import jwt
from jwt import InvalidTokenError

BEARER_PREFIX = "bearer "
PRINCIPAL_TOKEN_ALGORITHMS = ["HS256"]
REQUIRED_CLAIMS = ["exp", "sub"]


def parse_principal_token(*, secret: str, token: str | None) -> int | None:
    """Return the user id carried in the `sub` claim of a valid HS256 token."""
    if not secret or not token:
        return None

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=PRINCIPAL_TOKEN_ALGORITHMS,
            options={"require": REQUIRED_CLAIMS},
        )
    except InvalidTokenError:
        return None

    raw_user_id = str(claims.get("sub", "")).strip()
    if not raw_user_id.isdigit():
        return None
    user_id = int(raw_user_id)
    return user_id if user_id > 0 else None


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    if not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None
