# model_repo/domain/invites.py
"""
Invite links that let new users register while self-registration is disabled.

Each user has at most one invite token at a time. ``generate`` hands back the
current token while it is still valid and only mints a new one when there is
none or it has expired; ``reset`` always rotates. Tokens are multi-use: a
successful validation does not consume them.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError

from ..core.errors import CatalogError, NotFound
from .db_models import utcnow
from .repos import CatalogRepo

TOKEN_BYTES = 8
MAX_TOKEN_ATTEMPTS = 3


@dataclass
class Invite:
    token: str
    expires_at: datetime

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/register?token={self.token}"


class InviteGate:
    def __init__(
        self,
        repo: CatalogRepo,
        ttl_days: int = 7,
        registration_disabled: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.ttl = timedelta(days=ttl_days)
        self.registration_disabled = registration_disabled
        self.clock = clock

    def generate(self, user_id: int) -> Invite:
        current = self.repo.get_invite(user_id)
        if current is None:
            raise NotFound("User not found")
        token, expires = current["token"], current["expires"]
        if token and expires is not None and expires > self.clock():
            return Invite(token=token, expires_at=expires)
        return self.reset(user_id)

    def reset(self, user_id: int) -> Invite:
        expires = self.clock() + self.ttl
        for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
            token = secrets.token_hex(TOKEN_BYTES)
            try:
                updated = self.repo.set_invite(user_id, token, expires)
            except CatalogError as exc:
                if isinstance(exc.__cause__, IntegrityError) and attempt < MAX_TOKEN_ATTEMPTS:
                    logger.warning("Invite token collision for user {}, retrying", user_id)
                    continue
                raise
            if not updated:
                raise NotFound("User not found")
            logger.info("Issued invite token for user {} (expires {})", user_id, expires.isoformat())
            return Invite(token=token, expires_at=expires)
        raise CatalogError("Could not allocate an invite token")

    def validate(self, token: Optional[str]) -> bool:
        if not token:
            return False
        return self.repo.find_invite_owner(token, self.clock()) is not None

    def registration_allowed(self, token: Optional[str] = None) -> bool:
        if not self.registration_disabled:
            return True
        return self.validate(token)
