"""Dashboard blueprint — board list and per-session preferences.

Route Map:
  GET  /dashboard                 — Boards of the current context (?filter=all|personal|assigned)
  POST /boards                    — Create board (optional template_id)
  POST /boards/<id>/rename        — Rename board
  POST /boards/<id>/delete        — Delete board
  POST /orgs/switch               — Change the current organization
  POST /theme                     — Toggle dark/light theme
"""

import logging

from flask import (
    Blueprint,
    abort,
    flash,
    g,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required

from taskboard.constants import THEMES
from taskboard.decorators import setup_required
from taskboard.extensions import db
from taskboard.middleware.org_context import switch_org
from taskboard.models.board import Board
from taskboard.services import board_service, org_service

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__)

BOARD_FILTERS = ["all", "personal", "assigned"]


def _can_manage_board(board):
    if board.owner_id == current_user.id:
        return True
    return bool(board.organization) and org_service.is_org_admin(board.organization, current_user)


@dashboard_bp.route("/dashboard")
@setup_required
def dashboard():
    board_filter = request.args.get("filter", "all")
    if board_filter not in BOARD_FILTERS:
        board_filter = "all"

    boards = board_service.list_boards(current_user, g.current_org)
    visible = board_service.filter_boards(boards, board_filter)

    counts = {f: len(board_service.filter_boards(boards, f)) for f in BOARD_FILTERS}

    return render_template(
        "dashboard.html",
        boards=visible,
        board_filter=board_filter,
        board_filters=BOARD_FILTERS,
        counts=counts,
        templates=board_service.list_templates(),
    )


@dashboard_bp.route("/boards", methods=["POST"])
@setup_required
def create_board():
    title = request.form.get("title", "")
    template_id = request.form.get("template_id") or None
    org_id = g.current_org.id if g.current_org else None

    try:
        board = board_service.create_board(title, current_user, org_id=org_id, template_id=template_id)
    except ValueError as e:
        db.session.rollback()
        flash(str(e), "error")
        return redirect(url_for("dashboard.dashboard"))

    db.session.commit()
    flash("Board created.", "success")
    return redirect(url_for("board.board_page", board_id=board.id))


@dashboard_bp.route("/boards/<board_id>/rename", methods=["POST"])
@setup_required
def rename_board(board_id):
    board = db.session.get(Board, board_id)
    if board is None:
        abort(404)
    if not board_service.can_access_board(current_user, board):
        abort(403)

    try:
        board_service.update_board(board.id, request.form.get("title", ""))
    except ValueError as e:
        db.session.rollback()
        flash(str(e), "error")
        return redirect(url_for("dashboard.dashboard"))

    db.session.commit()
    flash("Board renamed.", "success")
    if request.form.get("from_board"):
        return redirect(url_for("board.board_page", board_id=board.id))
    return redirect(url_for("dashboard.dashboard"))


@dashboard_bp.route("/boards/<board_id>/delete", methods=["POST"])
@setup_required
def delete_board(board_id):
    board = db.session.get(Board, board_id)
    if board is None:
        abort(404)
    if not _can_manage_board(board):
        abort(403)

    title = board.title
    board_service.delete_board(board.id)
    db.session.commit()

    flash(f'Board "{title}" deleted.', "success")
    return redirect(url_for("dashboard.dashboard"))


@dashboard_bp.route("/orgs/switch", methods=["POST"])
@login_required
def switch_organization():
    org_id = request.form.get("org_id")
    org = switch_org(org_id)
    if org is None and org_id not in (None, "", "personal"):
        flash("You are not a member of that organization.", "error")
    return redirect(url_for("dashboard.dashboard"))


@dashboard_bp.route("/theme", methods=["POST"])
def toggle_theme():
    current = session.get("theme", THEMES[0])
    session["theme"] = THEMES[1] if current == THEMES[0] else THEMES[0]

    if request.is_json or request.accept_mimetypes.best == "application/json":
        return jsonify({"theme": session["theme"]})

    next_url = request.form.get("next", "")
    if not next_url.startswith("/") or next_url.startswith("//"):
        next_url = url_for("index")
    return redirect(next_url)
