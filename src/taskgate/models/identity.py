"""Identity token model - opaque, time-bounded proof of authentication."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from taskgate.utils.time import ensure_utc, utc_now


class IdentityToken(BaseModel):
    """Identity token as held by a client.

    ``token`` is the signed material presented to the server. Clients never
    decode it; ``subject`` and ``expires_at`` travel alongside it as
    server-reported metadata.
    """

    model_config = ConfigDict(frozen=True)

    subject: str = Field(..., min_length=1)
    issued_at: datetime
    expires_at: datetime
    token: str = Field(..., min_length=1, repr=False)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the token is past its expiry."""
        now = ensure_utc(now) if now else utc_now()
        return ensure_utc(self.expires_at) <= now

    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class Credentials(BaseModel):
    """Username/password pair handed to the authentication capability."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, repr=False)
