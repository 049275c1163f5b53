"""Organization models.

- Organization: a named group that owns boards.
- OrganizationMember: join table linking profiles to organizations with a role.
- OrganizationInvite: one-time invite token emailed to a prospective member.
"""

import uuid
from datetime import datetime, timezone

from taskboard.extensions import db


class Organization(db.Model):
    __tablename__ = "organizations"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=False
    )
    logo_url = db.Column(db.String(1024), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    owner = db.relationship("Profile", foreign_keys=[owner_id])
    members = db.relationship(
        "OrganizationMember",
        back_populates="organization",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    invites = db.relationship(
        "OrganizationInvite",
        back_populates="organization",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    boards = db.relationship("Board", back_populates="organization", lazy="dynamic")

    def __repr__(self):
        return f"<Organization {self.slug}>"


class OrganizationMember(db.Model):
    __tablename__ = "organization_members"

    ROLES = ["admin", "member"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    org_id = db.Column(
        db.String(36),
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=False
    )
    role = db.Column(db.String(20), nullable=False, default="member")  # admin | member
    joined_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint("org_id", "user_id", name="uq_org_member"),
    )

    # --- Relationships ---
    organization = db.relationship("Organization", back_populates="members")
    user = db.relationship("Profile", back_populates="memberships")

    def __repr__(self):
        return f"<OrganizationMember user={self.user_id} org={self.org_id} role={self.role}>"


class OrganizationInvite(db.Model):
    __tablename__ = "organization_invites"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    org_id = db.Column(
        db.String(36),
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    email = db.Column(db.String(255), nullable=False)
    token = db.Column(db.String(64), unique=True, nullable=False)
    invited_by = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    organization = db.relationship("Organization", back_populates="invites")

    @property
    def is_expired(self):
        now = datetime.now(timezone.utc)
        expires = self.expires_at
        # SQLite returns naive datetimes; Postgres returns aware ones.
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now > expires

    @property
    def is_used(self):
        return self.used_at is not None

    def __repr__(self):
        return f"<OrganizationInvite token={self.token[:8]}... org={self.org_id}>"
