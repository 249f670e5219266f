import logging
import time

from jose import ExpiredSignatureError, JWTError, jwt

from core.config import ALLOW_UNVERIFIED_INVITES, ENVIRONMENT, INVITE_TOKEN_SECRET
from interview_room.errors import ValidationError

logger = logging.getLogger("interview_room.invites")


class InviteVerifier:
    """Checks that an invite token was issued for the interview being joined and has not expired."""

    def __init__(
        self,
        secret: str = INVITE_TOKEN_SECRET,
        allow_unverified: bool = ALLOW_UNVERIFIED_INVITES,
        environment: str = ENVIRONMENT,
    ):
        self.secret = str(secret or "")
        self.allow_unverified = bool(allow_unverified) and environment != "production"

    def _claims(self, token: str) -> dict:
        if self.secret:
            try:
                return jwt.decode(token, self.secret, algorithms=["HS256"], options={"require_exp": True})
            except ExpiredSignatureError:
                raise ValidationError("invite expired", "Interview invite has expired")
            except JWTError:
                raise ValidationError("invite signature invalid")

        if not self.allow_unverified:
            raise ValidationError("INVITE_TOKEN_SECRET is not configured")
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            raise ValidationError("invite not decodable")
        logger.warning("ALLOW_UNVERIFIED_INVITES enabled; using unverified invite claims")
        expires_at = claims.get("exp")
        if expires_at is None:
            raise ValidationError("invite has no expiry")
        if float(expires_at) <= time.time():
            raise ValidationError("invite expired", "Interview invite has expired")
        return claims

    def verify(self, interview_id: str, token: str) -> dict:
        interview_id = str(interview_id or "").strip()
        token = str(token or "").strip()
        if not interview_id or not token:
            raise ValidationError("missing interview id or token")

        claims = self._claims(token)
        claimed_id = str(claims.get("interview_id") or claims.get("sub") or "")
        if claimed_id != interview_id:
            raise ValidationError("invite issued for another interview")
        return claims


def issue_invite(interview_id: str, secret: str, expires_at: int, **extra_claims) -> str:
    claims = {"interview_id": interview_id, "exp": int(expires_at), **extra_claims}
    return jwt.encode(claims, secret, algorithm="HS256")
