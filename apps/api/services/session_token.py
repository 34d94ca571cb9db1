"""Verification of the HS256 session tokens issued by the IdeaFlow identity service.

This API only consumes tokens. Issuance, refresh and cookies belong to the identity
service, which signs with the shared ``JWT_SECRET``.
"""

from dataclasses import dataclass
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "ideaflow_session"


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None


def _optional_claim(value) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


def verify_session_token(token: str) -> SessionClaims:
    """Check signature, expiry and token type; raise ``ValueError`` with a client-safe message."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise ValueError("Session token has expired.") from exc
    except JWTError as exc:
        raise ValueError("Invalid session token.") from exc

    if str(payload.get("type", "")).strip() != SESSION_TOKEN_TYPE:
        raise ValueError("Invalid session token type.")

    user_id = _optional_claim(payload.get("sub"))
    if user_id is None:
        raise ValueError("Session token missing subject.")

    return SessionClaims(
        user_id=user_id,
        email=_optional_claim(payload.get("email")),
        name=_optional_claim(payload.get("name")),
    )
