from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from jose import JWTError, jwt


@dataclass(frozen=True, slots=True)
class IdentityContext:
    """Decoded credential claims for the applicant driving a wizard session."""

    user_id: int
    subject: str | None
    role: str | None
    token: str

    @property
    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def decode_claims(token: str) -> dict[str, Any]:
    # Signature checks belong to the upstream API; only the claims are read here.
    try:
        return jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise ValueError("Invalid token") from exc


def identity_from_token(token: str | None) -> IdentityContext | None:
    if not token:
        return None
    try:
        claims = decode_claims(token)
    except ValueError:
        return None
    raw_user_id = claims.get("userId")
    try:
        user_id = int(raw_user_id)
    except (TypeError, ValueError):
        return None
    return IdentityContext(
        user_id=user_id,
        subject=claims.get("sub"),
        role=claims.get("role"),
        token=token,
    )
