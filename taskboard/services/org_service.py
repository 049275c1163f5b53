"""Organization service — orgs, memberships, invites and the org activity feed.

Invites follow a token lifecycle:
- invite_member: create a token tied to an org + email and mail the link
- validate_invite: check the token exists, is not expired, and is not used
- accept_invite: add the member row and mark the invite as used

Functions flush but do NOT commit; the calling route owns the transaction.
"""

import logging
import re
import secrets
import time
from datetime import datetime, timedelta, timezone

from flask import current_app, url_for

from taskboard.extensions import db
from taskboard.models.board import Board
from taskboard.models.card import Activity
from taskboard.models.organization import (
    Organization,
    OrganizationInvite,
    OrganizationMember,
)
from taskboard.services.email_service import send_email

logger = logging.getLogger(__name__)


def slugify(name):
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "org"


# ──────────────────────────────────────────────
# Organizations
# ──────────────────────────────────────────────

def create_organization(name, owner):
    """Create an organization and make the owner its first admin.

    The slug gets a millisecond timestamp suffix so two orgs with the
    same name never collide.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Organization name is required.")

    org = Organization(
        name=name,
        slug=f"{slugify(name)}-{int(time.time() * 1000)}",
        owner_id=owner.id,
    )
    db.session.add(org)
    db.session.flush()

    db.session.add(OrganizationMember(org_id=org.id, user_id=owner.id, role="admin"))
    db.session.flush()

    logger.info(f"Organization created: {org.slug} by {owner.email}")
    return org


def list_organizations(profile):
    """Orgs the profile belongs to; falls back to the orgs it owns."""
    orgs = (
        Organization.query
        .join(OrganizationMember, OrganizationMember.org_id == Organization.id)
        .filter(OrganizationMember.user_id == profile.id)
        .order_by(Organization.created_at)
        .all()
    )
    if orgs:
        return orgs
    return (
        Organization.query
        .filter_by(owner_id=profile.id)
        .order_by(Organization.created_at)
        .all()
    )


def needs_onboarding(profile):
    """True for a profile with no membership, no owned org and no owned board."""
    if profile.memberships.first() is not None:
        return False
    if Organization.query.filter_by(owner_id=profile.id).first() is not None:
        return False
    if Board.query.filter_by(owner_id=profile.id).first() is not None:
        return False
    return True


def get_membership(org, profile):
    return OrganizationMember.query.filter_by(
        org_id=org.id, user_id=profile.id
    ).first()


def is_org_admin(org, profile):
    if org is None or profile is None:
        return False
    if org.owner_id == profile.id:
        return True
    membership = get_membership(org, profile)
    return membership is not None and membership.role == "admin"


# ──────────────────────────────────────────────
# Members
# ──────────────────────────────────────────────

def list_members(org):
    """Members joined with their profiles, owner first."""
    members = (
        OrganizationMember.query
        .filter_by(org_id=org.id)
        .order_by(OrganizationMember.joined_at)
        .all()
    )
    result = []
    for m in members:
        result.append({
            "id": m.id,
            "user_id": m.user_id,
            "role": m.role,
            "joined_at": m.joined_at,
            "full_name": m.user.full_name if m.user else None,
            "email": m.user.email if m.user else None,
            "avatar_url": m.user.avatar_url if m.user else None,
            "is_owner": m.user_id == org.owner_id,
        })
    result.sort(key=lambda item: not item["is_owner"])
    return result


def _get_member(org, member_id):
    member = OrganizationMember.query.filter_by(id=member_id, org_id=org.id).first()
    if member is None:
        raise ValueError("Member not found.")
    return member


def update_member_role(org, member_id, role):
    if role not in OrganizationMember.ROLES:
        raise ValueError(f"Invalid role: {role}")

    member = _get_member(org, member_id)
    if member.user_id == org.owner_id:
        raise ValueError("The organization owner's role cannot be changed.")

    member.role = role
    db.session.flush()
    logger.info(f"Role of member {member.user_id} in {org.slug} set to {role}")
    return member


def remove_member(org, member_id):
    member = _get_member(org, member_id)
    if member.user_id == org.owner_id:
        raise ValueError("The organization owner cannot be removed.")

    db.session.delete(member)
    db.session.flush()
    logger.info(f"Member {member.user_id} removed from {org.slug}")


# ──────────────────────────────────────────────
# Invites
# ──────────────────────────────────────────────

def invite_member(org, email, inviter):
    """Create an invite token for `email` and mail the accept link.

    Returns:
        OrganizationInvite: the newly created invite row
    """
    email = (email or "").lower().strip()
    if not email or "@" not in email:
        raise ValueError("A valid email address is required.")

    from taskboard.models.profile import Profile

    existing = Profile.query.filter_by(email=email).first()
    if existing is not None and get_membership(org, existing) is not None:
        raise ValueError("This user is already a member of the organization.")

    expires_days = current_app.config.get("ORG_INVITE_TTL_DAYS", 14)
    invite = OrganizationInvite(
        org_id=org.id,
        email=email,
        token=secrets.token_urlsafe(32),
        invited_by=inviter.id,
        expires_at=datetime.now(timezone.utc) + timedelta(days=expires_days),
    )
    db.session.add(invite)
    db.session.flush()

    accept_url = url_for("admin.accept_invite", token=invite.token, _external=True)
    send_email(
        to=email,
        subject=f"You've been invited to {org.name} on Taskboard",
        template="emails/org_invite.html",
        context={
            "org_name": org.name,
            "inviter_name": inviter.display_name,
            "accept_url": accept_url,
            "expires_days": expires_days,
        },
    )
    logger.info(f"Invite sent to {email} for {org.slug}")
    return invite


def validate_invite(token):
    """Look up an invite token and check if it's usable.

    Returns:
        tuple: (invite, error_message)
    """
    if not token:
        return None, "No invite token provided."

    invite = OrganizationInvite.query.filter_by(token=token).first()
    if invite is None:
        return None, "Invalid invite link."
    if invite.is_used:
        return None, "This invite link has already been used."
    if invite.is_expired:
        return None, "This invite link has expired."
    return invite, None


def accept_invite(token, profile):
    """Join the invite's organization as a member.

    Raises:
        ValueError: If the token is unusable or locked to another email.
    """
    invite, error = validate_invite(token)
    if error:
        raise ValueError(error)

    if invite.email.lower() != (profile.email or "").lower():
        raise ValueError("This invite is reserved for a different email address.")

    org = invite.organization
    if get_membership(org, profile) is None:
        db.session.add(OrganizationMember(org_id=org.id, user_id=profile.id, role="member"))

    invite.used_at = datetime.now(timezone.utc)
    db.session.flush()
    logger.info(f"{profile.email} joined {org.slug} via invite")
    return org


# ──────────────────────────────────────────────
# Activity feed
# ──────────────────────────────────────────────

def org_activities(org, limit=100):
    """Newest activities across the org's boards, flattened for display."""
    rows = (
        Activity.query
        .join(Board, Board.id == Activity.board_id)
        .filter(Board.org_id == org.id)
        .order_by(Activity.created_at.desc())
        .limit(limit)
        .all()
    )
    result = []
    for a in rows:
        result.append({
            "id": a.id,
            "action_type": a.action_type,
            "details": a.details or {},
            "created_at": a.created_at,
            "user_name": a.actor.display_name if a.actor else "Unknown user",
            "board_title": a.board.title if a.board else "Deleted board",
            "card_title": a.card.title if a.card else None,
        })
    return result


def describe_activity(item):
    """One-sentence summary of an activity feed entry."""
    details = item.get("details") or {}
    user = item.get("user_name") or "Someone"
    card = item.get("card_title") or details.get("card_title") or "a card"
    board = item.get("board_title") or "a board"

    action = item.get("action_type")
    if action == "create_card":
        return f'{user} created card "{card}" on {board}'
    if action == "move_card":
        return (
            f'{user} moved "{card}" from {details.get("from_column", "?")} '
            f'to {details.get("to_column", "?")}'
        )
    if action == "update_card":
        return f'{user} updated "{card}"'
    if action == "delete_card":
        return f'{user} deleted card "{details.get("card_title", "?")}" from {board}'
    if action == "assign_card":
        assignee = details.get("assignee_name")
        if assignee:
            return f'{user} assigned "{card}" to {assignee}'
        return f'{user} unassigned "{card}"'
    if action == "add_comment":
        return f'{user} commented on "{card}"'
    if action == "upload_attachment":
        return f'{user} attached {details.get("file_name", "a file")} to "{card}"'
    if action == "delete_attachment":
        return f'{user} removed {details.get("file_name", "a file")} from "{card}"'
    if action == "add_subtask":
        return f'{user} added subtask "{details.get("subtask_title", "?")}" to "{card}"'
    if action == "toggle_subtask":
        state = "completed" if details.get("is_completed") else "reopened"
        return f'{user} {state} subtask "{details.get("subtask_title", "?")}"'
    if action == "create_column":
        return f'{user} added column "{details.get("column_title", "?")}" to {board}'
    return f"{user} performed {action} on {board}"
