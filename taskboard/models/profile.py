"""Profile model.

One row per BaaS auth user (``profiles.id`` = auth user id). Carries the
display info shown on cards, comments and the activity trail.
Flask-Login integration via UserMixin.
"""

import uuid

from flask_login import UserMixin

from taskboard.extensions import db


class Profile(UserMixin, db.Model):
    __tablename__ = "profiles"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(1024), nullable=True)
    # Only set for accounts managed by the local auth fallback
    password_hash = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    memberships = db.relationship(
        "OrganizationMember", back_populates="user", lazy="dynamic"
    )
    owned_boards = db.relationship(
        "Board",
        foreign_keys="Board.owner_id",
        back_populates="owner",
        lazy="dynamic",
    )

    @property
    def display_name(self):
        return self.full_name or self.email

    def __repr__(self):
        return f"<Profile {self.email}>"
