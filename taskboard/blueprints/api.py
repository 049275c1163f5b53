"""API blueprint — /api/*

JSON endpoints behind the board page. Session auth; every write sends the
CSRF token in the X-CSRFToken header. Each mutation commits once, which
fans the change out to SSE subscribers.

Responses: the affected row on success, {"error": msg} with 400/403/404
on failure, plus an optional "message"/"celebrate" pair for toasts.

Route Map:
  GET    /api/boards/<id>                    — Board view model (filter args apply)
  GET    /api/boards/<id>/search?q=          — Card search
  GET    /api/boards/<id>/deadlines          — Deadline tracker groups
  GET    /api/boards/<id>/members            — Assignable profiles
  GET    /api/boards/<id>/events             — SSE stream for the board
  GET    /api/events                         — SSE stream for the dashboard
  POST   /api/boards/<id>/columns            — Create column
  PUT    /api/columns/<id>                   — Update column (title, wip_limit)
  DELETE /api/columns/<id>                   — Delete column
  PUT    /api/columns/<id>/position          — Reorder column
  POST   /api/columns/<id>/cards             — Create card
  PUT    /api/cards/<id>                     — Update card
  DELETE /api/cards/<id>                     — Delete card
  POST   /api/cards/<id>/move                — Move card (column_id, position)
  POST   /api/cards/<id>/move/<direction>    — Move card left/right
  PUT    /api/cards/<id>/assignee            — Assign / unassign
  POST   /api/cards/<id>/labels/<label_id>   — Toggle label
  POST   /api/boards/<id>/labels             — Create label
  DELETE /api/labels/<id>                    — Delete label
  POST   /api/cards/<id>/subtasks            — Add subtask
  PUT    /api/subtasks/<id>                  — Toggle subtask (runs automation)
  DELETE /api/subtasks/<id>                  — Delete subtask
  POST   /api/cards/<id>/comments            — Add comment
  DELETE /api/comments/<id>                  — Delete comment
  POST   /api/cards/<id>/attachments         — Upload attachment
  DELETE /api/attachments/<id>               — Delete attachment
  GET    /api/attachments/<id>/url           — Signed download URL
"""

import logging
from datetime import date

from flask import Blueprint, Response, abort, current_app, jsonify, request
from flask_login import current_user

from taskboard.decorators import api_login_required
from taskboard.extensions import db
from taskboard.models.board import Board, BoardColumn, Label
from taskboard.models.card import Attachment, Card, Comment, Subtask
from taskboard.services import board_service, filter_service, realtime_service
from taskboard.services.storage_service import StorageError

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


# ─── Helpers ─────────────────────────────────────────────────────

def _error(message, status=400):
    return jsonify({"error": message}), status


def _load(model, obj_id):
    obj = db.session.get(model, obj_id)
    if obj is None:
        abort(404)
    return obj


def _authorize(board):
    if not board_service.can_access_board(current_user, board):
        abort(403)
    return board


def _json():
    return request.get_json(silent=True) or {}


def _column_dict(col):
    return {
        "id": col.id,
        "board_id": col.board_id,
        "title": col.title,
        "position": col.position,
        "wip_limit": col.wip_limit,
    }


def _card_dict(card):
    return {
        "id": card.id,
        "column_id": card.column_id,
        "title": card.title,
        "description": card.description or "",
        "position": card.position,
        "priority": card.priority,
        "due_date": card.due_date.isoformat() if card.due_date else None,
        "assigned_to": card.assigned_to,
    }


# ─── Board API ───────────────────────────────────────────────────

@api_bp.route("/boards/<board_id>")
@api_login_required
def get_board(board_id):
    _authorize(_load(Board, board_id))
    data = board_service.get_board_data(board_id)

    filters = filter_service.parse_filters(request.args)
    columns = filter_service.apply_filters(data["columns"], filters)
    data["columns"] = columns
    data["filters"] = filters
    data["total_cards"] = sum(c["card_count"] for c in columns)
    data["filtered_cards"] = filter_service.count_cards(columns)
    return jsonify(data)


@api_bp.route("/boards/<board_id>/search")
@api_login_required
def search(board_id):
    _authorize(_load(Board, board_id))
    data = board_service.get_board_data(board_id)
    results = filter_service.search_cards(data["columns"], request.args.get("q", ""))
    return jsonify([
        {
            "id": r["card"]["id"],
            "title": r["card"]["title"],
            "priority": r["card"]["priority"],
            "column_title": r["column_title"],
        }
        for r in results
    ])


@api_bp.route("/boards/<board_id>/deadlines")
@api_login_required
def deadlines(board_id):
    _authorize(_load(Board, board_id))
    data = board_service.get_board_data(board_id)
    groups = filter_service.deadline_groups(data["columns"], date.today())

    result = {
        "overdue_count": groups["overdue_count"],
        "today_count": groups["today_count"],
    }
    for tab in filter_service.DEADLINE_TABS:
        result[tab] = [
            {
                "id": item["card"]["id"],
                "title": item["card"]["title"],
                "priority": item["card"]["priority"],
                "column_title": item["column_title"],
                "due_date": item["card"]["due_date"],
                "days_remaining": item["days_remaining"],
                "is_overdue": item["is_overdue"],
                "is_today": item["is_today"],
                "label": filter_service.format_days_remaining(
                    item["days_remaining"], item["is_overdue"], item["is_today"]
                ),
            }
            for item in groups[tab]
        ]
    return jsonify(result)


@api_bp.route("/boards/<board_id>/members")
@api_login_required
def members(board_id):
    board = _authorize(_load(Board, board_id))
    return jsonify([
        {
            "id": p.id,
            "full_name": p.full_name,
            "email": p.email,
            "avatar_url": p.avatar_url,
        }
        for p in board_service.board_members(board)
    ])


# ─── Realtime (SSE) ──────────────────────────────────────────────

def _sse_response(filters):
    hub = realtime_service.get_hub()
    sub = hub.subscribe(filters)
    heartbeat = current_app.config.get("REALTIME_HEARTBEAT_SECONDS", 30)
    return Response(
        realtime_service.event_stream(hub, sub, heartbeat),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@api_bp.route("/boards/<board_id>/events")
@api_login_required
def board_events(board_id):
    _authorize(_load(Board, board_id))
    return _sse_response(realtime_service.board_filters(board_id))


@api_bp.route("/events")
@api_login_required
def dashboard_events():
    return _sse_response(realtime_service.DASHBOARD_FILTERS)


# ─── Column API ──────────────────────────────────────────────────

@api_bp.route("/boards/<board_id>/columns", methods=["POST"])
@api_login_required
def create_column(board_id):
    _authorize(_load(Board, board_id))
    try:
        col = board_service.add_column(board_id, _json().get("title", ""), current_user)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify(_column_dict(col)), 201


@api_bp.route("/columns/<column_id>", methods=["PUT"])
@api_login_required
def update_column(column_id):
    col = _load(BoardColumn, column_id)
    _authorize(col.board)
    data = _json()

    kwargs = {"title": data.get("title")}
    if "wip_limit" in data:
        kwargs["wip_limit"] = data["wip_limit"]
    try:
        board_service.update_column(col.id, **kwargs)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify(_column_dict(col))


@api_bp.route("/columns/<column_id>", methods=["DELETE"])
@api_login_required
def delete_column(column_id):
    col = _load(BoardColumn, column_id)
    _authorize(col.board)
    board_service.delete_column(col.id)
    db.session.commit()
    return jsonify({"success": True})


@api_bp.route("/columns/<column_id>/position", methods=["PUT"])
@api_login_required
def reorder_column(column_id):
    col = _load(BoardColumn, column_id)
    _authorize(col.board)
    try:
        position = int(_json().get("position", 0))
    except (TypeError, ValueError):
        return _error("Position must be a number.")
    board_service.reorder_column(col.id, position)
    db.session.commit()
    return jsonify(_column_dict(col))


# ─── Card API ────────────────────────────────────────────────────

@api_bp.route("/columns/<column_id>/cards", methods=["POST"])
@api_login_required
def create_card(column_id):
    col = _load(BoardColumn, column_id)
    _authorize(col.board)
    data = _json()
    try:
        card = board_service.add_card(
            col.id,
            data.get("title", ""),
            current_user,
            description=data.get("description"),
            priority=data.get("priority") or "medium",
        )
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify(_card_dict(card)), 201


@api_bp.route("/cards/<card_id>", methods=["PUT"])
@api_login_required
def update_card(card_id):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    data = _json()
    updates = {k: data[k] for k in ("title", "description", "due_date", "priority") if k in data}
    try:
        board_service.update_card(card.id, updates, current_user)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify(_card_dict(card))


@api_bp.route("/cards/<card_id>", methods=["DELETE"])
@api_login_required
def delete_card(card_id):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    board_service.delete_card(card.id, current_user)
    db.session.commit()
    return jsonify({"success": True, "message": "Card deleted."})


@api_bp.route("/cards/<card_id>/move", methods=["POST"])
@api_login_required
def move_card(card_id):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    data = _json()
    try:
        position = int(data.get("position", 0))
        board_service.move_card(card.id, data.get("column_id"), position, current_user)
    except (TypeError, ValueError) as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify(_card_dict(card))


@api_bp.route("/cards/<card_id>/move/<direction>", methods=["POST"])
@api_login_required
def move_card_direction(card_id, direction):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    try:
        result = board_service.move_card_direction(card.id, direction, current_user)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()

    result["message"] = f'Moved to "{result["column_title"]}"'
    if result["celebrate"]:
        result["message"] = "Task completed!"
    return jsonify(result)


@api_bp.route("/cards/<card_id>/assignee", methods=["PUT"])
@api_login_required
def assign_card(card_id):
    card = _load(Card, card_id)
    board = _authorize(card.column.board)
    user_id = _json().get("user_id") or None

    if user_id and user_id not in {p.id for p in board_service.board_members(board)}:
        return _error("That user cannot be assigned on this board.")
    try:
        board_service.assign_card(card.id, user_id, current_user)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify(_card_dict(card))


@api_bp.route("/cards/<card_id>/labels/<label_id>", methods=["POST"])
@api_login_required
def toggle_label(card_id, label_id):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    try:
        added = board_service.toggle_card_label(card.id, label_id)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify({"added": added})


# ─── Label API ───────────────────────────────────────────────────

@api_bp.route("/boards/<board_id>/labels", methods=["POST"])
@api_login_required
def create_label(board_id):
    _authorize(_load(Board, board_id))
    data = _json()
    try:
        label = board_service.create_label(board_id, data.get("text", ""), data.get("color"))
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify({"id": label.id, "text": label.text, "color": label.color}), 201


@api_bp.route("/labels/<label_id>", methods=["DELETE"])
@api_login_required
def delete_label(label_id):
    label = _load(Label, label_id)
    _authorize(label.board)
    board_service.delete_label(label.id)
    db.session.commit()
    return jsonify({"success": True})


# ─── Subtask API ─────────────────────────────────────────────────

@api_bp.route("/cards/<card_id>/subtasks", methods=["POST"])
@api_login_required
def add_subtask(card_id):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    try:
        subtask = board_service.add_subtask(card.id, _json().get("title", ""), current_user)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify({
        "id": subtask.id,
        "title": subtask.title,
        "is_completed": subtask.is_completed,
        "position": subtask.position,
    }), 201


@api_bp.route("/subtasks/<subtask_id>", methods=["PUT"])
@api_login_required
def toggle_subtask(subtask_id):
    subtask = _load(Subtask, subtask_id)
    _authorize(subtask.card.column.board)
    is_completed = bool(_json().get("is_completed"))

    result = board_service.toggle_subtask(subtask.id, is_completed, current_user)
    db.session.commit()

    response = {"id": subtask.id, "is_completed": subtask.is_completed, **result}
    if result["automation_message"]:
        response["message"] = result["automation_message"]
        response["celebrate"] = True
    return jsonify(response)


@api_bp.route("/subtasks/<subtask_id>", methods=["DELETE"])
@api_login_required
def delete_subtask(subtask_id):
    subtask = _load(Subtask, subtask_id)
    _authorize(subtask.card.column.board)
    board_service.delete_subtask(subtask.id)
    db.session.commit()
    return jsonify({"success": True})


# ─── Comment API ─────────────────────────────────────────────────

@api_bp.route("/cards/<card_id>/comments", methods=["POST"])
@api_login_required
def add_comment(card_id):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    try:
        comment = board_service.add_comment(card.id, _json().get("content", ""), current_user)
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    db.session.commit()
    return jsonify({
        "id": comment.id,
        "content": comment.content,
        "author_name": current_user.display_name,
    }), 201


@api_bp.route("/comments/<comment_id>", methods=["DELETE"])
@api_login_required
def delete_comment(comment_id):
    comment = _load(Comment, comment_id)
    board = _authorize(comment.card.column.board)
    if comment.user_id != current_user.id and board.owner_id != current_user.id:
        return _error("You can only delete your own comments.", 403)
    board_service.delete_comment(comment.id)
    db.session.commit()
    return jsonify({"success": True})


# ─── Attachment API ──────────────────────────────────────────────

@api_bp.route("/cards/<card_id>/attachments", methods=["POST"])
@api_login_required
def upload_attachment(card_id):
    card = _load(Card, card_id)
    _authorize(card.column.board)
    try:
        attachment = board_service.upload_attachment(
            card.id, request.files.get("file"), current_user
        )
    except ValueError as e:
        db.session.rollback()
        return _error(str(e))
    except StorageError as e:
        db.session.rollback()
        return _error(str(e), 502)
    db.session.commit()
    return jsonify({
        "id": attachment.id,
        "file_name": attachment.file_name,
        "file_type": attachment.file_type,
        "file_size": attachment.file_size,
        "message": "File uploaded.",
    }), 201


@api_bp.route("/attachments/<attachment_id>", methods=["DELETE"])
@api_login_required
def delete_attachment(attachment_id):
    attachment = _load(Attachment, attachment_id)
    _authorize(attachment.card.column.board)
    try:
        board_service.delete_attachment(attachment.id, current_user)
    except StorageError as e:
        db.session.rollback()
        return _error(str(e), 502)
    db.session.commit()
    return jsonify({"success": True, "message": "File removed."})


@api_bp.route("/attachments/<attachment_id>/url")
@api_login_required
def attachment_url(attachment_id):
    attachment = _load(Attachment, attachment_id)
    _authorize(attachment.card.column.board)
    try:
        url = board_service.attachment_url(attachment.id)
    except StorageError as e:
        return _error(str(e), 502)
    return jsonify({"url": url})
