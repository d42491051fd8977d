from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


class TokenError(ValueError):
    pass


def issue_requester_token(
    *,
    requester_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {"sub": str(requester_id), "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_requester_id(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> int:
    """Return the requester id carried in `sub`. Raises TokenError on any problem."""
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms), options={"require": ["exp", "sub"]})
    except InvalidTokenError as exc:  # includes ExpiredSignatureError and missing claims
        raise TokenError("invalid token") from exc

    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenError("token sub is not an integer") from exc
