"""Magic-link token model.

Used only by the local auth fallback (no Supabase configured). Tokens are
one-time-use and short-lived; Supabase manages its own OTPs otherwise.
"""

import uuid
from datetime import datetime, timezone

from taskboard.extensions import db


class MagicLinkToken(db.Model):
    __tablename__ = "magic_link_tokens"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), nullable=False)
    token = db.Column(db.String(64), unique=True, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    @property
    def is_expired(self):
        now = datetime.now(timezone.utc)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now > expires

    @property
    def is_used(self):
        return self.used_at is not None

    def __repr__(self):
        return f"<MagicLinkToken {self.email}>"
