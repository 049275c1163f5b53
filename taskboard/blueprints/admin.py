"""Admin blueprint — organization administration.

Member management and the org-wide activity feed.
Admin routes are protected by @org_admin_required (admin of g.current_org).

Route Map:
  GET  /admin?tab=members|activity          — Members table / activity feed
  POST /admin/members/<id>/role             — Change a member's role
  POST /admin/members/<id>/remove           — Remove a member
  POST /admin/invite                        — Email an invite link
  GET  /orgs/invite/accept?token=...        — Join an org from an invite
"""

import logging

from flask import (
    Blueprint,
    flash,
    g,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required

from taskboard.decorators import org_admin_required
from taskboard.extensions import db, limiter
from taskboard.models.organization import OrganizationMember
from taskboard.services import org_service

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)

ADMIN_TABS = ["members", "activity"]


# ══════════════════════════════════════════════
#  ORG ADMIN
# ══════════════════════════════════════════════

@admin_bp.route("/admin")
@org_admin_required
def admin_page():
    tab = request.args.get("tab", "members")
    if tab not in ADMIN_TABS:
        tab = "members"

    org = g.current_org
    members = org_service.list_members(org)

    activities = []
    if tab == "activity":
        activities = org_service.org_activities(org, limit=100)
        for item in activities:
            item["sentence"] = org_service.describe_activity(item)

    return render_template(
        "admin.html",
        tab=tab,
        org=org,
        members=members,
        activities=activities,
        roles=OrganizationMember.ROLES,
    )


@admin_bp.route("/admin/members/<member_id>/role", methods=["POST"])
@org_admin_required
def change_role(member_id):
    try:
        org_service.update_member_role(g.current_org, member_id, request.form.get("role", ""))
    except ValueError as e:
        db.session.rollback()
        flash(str(e), "error")
        return redirect(url_for("admin.admin_page"))

    db.session.commit()
    flash("Role updated.", "success")
    return redirect(url_for("admin.admin_page"))


@admin_bp.route("/admin/members/<member_id>/remove", methods=["POST"])
@org_admin_required
def remove_member(member_id):
    try:
        org_service.remove_member(g.current_org, member_id)
    except ValueError as e:
        db.session.rollback()
        flash(str(e), "error")
        return redirect(url_for("admin.admin_page"))

    db.session.commit()
    flash("Member removed.", "success")
    return redirect(url_for("admin.admin_page"))


@admin_bp.route("/admin/invite", methods=["POST"])
@org_admin_required
@limiter.limit("20 per hour")
def invite():
    email = request.form.get("email", "")
    try:
        org_service.invite_member(g.current_org, email, current_user)
    except ValueError as e:
        db.session.rollback()
        flash(str(e), "error")
        return redirect(url_for("admin.admin_page"))

    db.session.commit()
    flash(f"Invite sent to {email.strip().lower()}.", "success")
    return redirect(url_for("admin.admin_page"))


# ══════════════════════════════════════════════
#  INVITE ACCEPTANCE
# ══════════════════════════════════════════════

@admin_bp.route("/orgs/invite/accept")
@login_required
def accept_invite():
    """Join the org named by the invite token, then switch to it."""
    token = request.args.get("token", "")
    try:
        org = org_service.accept_invite(token, current_user)
    except ValueError as e:
        db.session.rollback()
        flash(str(e), "error")
        return redirect(url_for("dashboard.dashboard"))

    db.session.commit()
    session["current_org_id"] = org.id
    flash(f"You joined {org.name}.", "success")
    return redirect(url_for("dashboard.dashboard"))
