"""Onboarding blueprint — first-run setup.

Route Map:
  GET/POST /profile-setup   — Set full name (and optionally a password)
  GET/POST /onboarding      — Create an organization, a first board, or skip
"""

from flask import (
    Blueprint,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required

from taskboard.extensions import db
from taskboard.services import auth_service, board_service, org_service
from taskboard.services.auth_service import AuthError

onboarding_bp = Blueprint("onboarding", __name__)


# ──────────────────────────────────────────────
# GET/POST /profile-setup
# ──────────────────────────────────────────────

@onboarding_bp.route("/profile-setup", methods=["GET", "POST"])
@login_required
def profile_setup():
    """Collect the name magic-link users never typed in."""
    if request.method == "POST":
        full_name = request.form.get("full_name", "").strip()
        password = request.form.get("password", "")
        confirm = request.form.get("confirm_password", "")

        if not full_name:
            flash("Full name is required.", "error")
            return render_template("profile_setup.html", full_name=full_name)

        if password:
            if password != confirm:
                flash("Passwords do not match.", "error")
                return render_template("profile_setup.html", full_name=full_name)
            try:
                auth_service.update_password(
                    current_user, password, auth_service.get_access_token()
                )
            except AuthError as e:
                db.session.rollback()
                flash(str(e), "error")
                return render_template("profile_setup.html", full_name=full_name)

        current_user.full_name = full_name
        db.session.commit()

        flash("Profile saved.", "success")
        if org_service.needs_onboarding(current_user):
            return redirect(url_for("onboarding.onboarding"))
        return redirect(url_for("dashboard.dashboard"))

    return render_template("profile_setup.html", full_name=current_user.full_name or "")


# ──────────────────────────────────────────────
# GET/POST /onboarding
# ──────────────────────────────────────────────

@onboarding_bp.route("/onboarding", methods=["GET", "POST"])
@login_required
def onboarding():
    """First-run choices.

    POST action=create_org:   org_name (+ optional board_title inside it)
    POST action=create_board: board_title (personal board)
    POST action=skip:         remember the choice for this session
    """
    if not current_user.full_name:
        return redirect(url_for("onboarding.profile_setup"))

    if request.method == "GET" and not org_service.needs_onboarding(current_user):
        return redirect(url_for("dashboard.dashboard"))

    if request.method == "POST":
        action = request.form.get("action", "")

        if action == "skip":
            session["onboarding_skipped"] = True
            return redirect(url_for("dashboard.dashboard"))

        board_title = request.form.get("board_title", "").strip()
        try:
            if action == "create_org":
                org = org_service.create_organization(
                    request.form.get("org_name", ""), current_user
                )
                if board_title:
                    board_service.create_board(board_title, current_user, org_id=org.id)
                session["current_org_id"] = org.id
            elif action == "create_board":
                board = board_service.create_board(board_title, current_user)
            else:
                flash("Please choose an option.", "error")
                return render_template("onboarding.html")
        except ValueError as e:
            db.session.rollback()
            flash(str(e), "error")
            return render_template("onboarding.html")

        db.session.commit()

        if action == "create_board":
            return redirect(url_for("board.board_page", board_id=board.id))
        flash(f"Welcome to {org.name}!", "success")
        return redirect(url_for("dashboard.dashboard"))

    return render_template("onboarding.html")
