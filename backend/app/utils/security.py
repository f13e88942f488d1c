from typing import Any

from jose import JWTError, jwt


def read_token_claims(token: str) -> dict[str, Any]:
    """Claims of an access token issued by the upstream OAuth server.

    The signature is verified upstream on every forwarded call; here the
    claims only provide the caller's identity for logging and the ledger.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if not isinstance(claims, dict):
        raise ValueError("Invalid token payload")
    return claims


def token_subject(token: str) -> str | None:
    try:
        claims = read_token_claims(token)
    except ValueError:
        return None
    subject = claims.get("sub") or claims.get("user_id")
    return str(subject) if subject else None
