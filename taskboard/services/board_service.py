"""Board service — board state, mutations and the activity trail.

Every read rebuilds the full nested view model from the store:

    board → columns → cards → labels / subtasks / attachments / comments / activities

Mutations flush but do NOT commit; routes commit once per request, which
is also when realtime_service publishes the change events.

Raises ValueError for missing rows and invalid input. Storage failures
surface as storage_service.StorageError.
"""

import logging
import re
from datetime import date, datetime, timezone

import bleach
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from taskboard.constants import DEFAULT_COLUMNS
from taskboard.extensions import db
from taskboard.models.board import Board, BoardColumn, BoardTemplate, CardLabel, Label
from taskboard.models.card import Activity, Attachment, Card, Comment, Subtask
from taskboard.models.organization import OrganizationMember
from taskboard.models.profile import Profile
from taskboard.services import storage_service

logger = logging.getLogger(__name__)

DONE_KEYWORDS = ("done", "tamam", "biten")

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")

# Sentinel for "argument not given" where None is a meaningful value
_UNSET = object()


def _sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(text, tags=[], strip=True).strip()


def _iso(value):
    return value.isoformat() if value else None


def _get(model, obj_id, name):
    obj = db.session.get(model, obj_id) if obj_id else None
    if obj is None:
        raise ValueError(f"{name} not found.")
    return obj


def is_done_title(title):
    lowered = (title or "").lower()
    return any(word in lowered for word in DONE_KEYWORDS)


def find_done_column(columns):
    """First column whose title reads as a 'done' lane, else None."""
    for col in columns:
        if is_done_title(col.title):
            return col
    return None


# ──────────────────────────────────────────────
# Activity trail
# ──────────────────────────────────────────────

def log_activity(board_id, card_id, action_type, details=None, actor=None):
    """Append an activity row inside a savepoint.

    A failed insert is logged and rolled back to the savepoint so the
    mutation that triggered it still goes through.
    """
    if action_type not in Activity.ACTION_TYPES:
        logger.warning(f"Skipping unknown activity type: {action_type}")
        return None

    details = dict(details or {})
    if actor is not None:
        details.setdefault("user_name", actor.display_name)

    activity = Activity(
        board_id=board_id,
        card_id=card_id,
        user_id=actor.id if actor is not None else None,
        action_type=action_type,
        details=details,
    )
    try:
        with db.session.begin_nested():
            db.session.add(activity)
    except SQLAlchemyError as e:
        logger.error(f"Failed to log activity {action_type} on board {board_id}: {e}")
        return None
    return activity


# ──────────────────────────────────────────────
# Board view model
# ──────────────────────────────────────────────

def _profile_dict(profile):
    if profile is None:
        return None
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "email": profile.email,
        "avatar_url": profile.avatar_url,
        "display_name": profile.display_name,
    }


def _label_dict(label):
    return {"id": label.id, "board_id": label.board_id, "text": label.text, "color": label.color}


def _subtask_dict(subtask):
    return {
        "id": subtask.id,
        "card_id": subtask.card_id,
        "title": subtask.title,
        "is_completed": bool(subtask.is_completed),
        "position": subtask.position,
    }


def _attachment_dict(attachment):
    return {
        "id": attachment.id,
        "card_id": attachment.card_id,
        "file_name": attachment.file_name,
        "file_type": attachment.file_type,
        "file_size": attachment.file_size,
        "storage_path": attachment.storage_path,
        "created_at": _iso(attachment.created_at),
    }


def _comment_dict(comment):
    return {
        "id": comment.id,
        "card_id": comment.card_id,
        "user_id": comment.user_id,
        "author_name": comment.author.display_name if comment.author else "Unknown user",
        "content": comment.content,
        "created_at": _iso(comment.created_at),
    }


def _activity_dict(activity):
    return {
        "id": activity.id,
        "board_id": activity.board_id,
        "card_id": activity.card_id,
        "user_id": activity.user_id,
        "action_type": activity.action_type,
        "details": activity.details or {},
        "created_at": _iso(activity.created_at),
    }


def wip_status(card_count, wip_limit):
    """WIP flags for a column; all False when the column has no limit."""
    if not wip_limit:
        return {"is_over_limit": False, "is_at_limit": False, "is_near_limit": False}
    return {
        "is_over_limit": card_count >= wip_limit,
        "is_at_limit": card_count == wip_limit,
        "is_near_limit": card_count == wip_limit - 1,
    }


def _group_by_card(rows):
    grouped = {}
    for row in rows:
        grouped.setdefault(row.card_id, []).append(row)
    return grouped


def get_board_data(board_id):
    """Fetch and compose the nested board view model.

    Returns None when the board does not exist.
    """
    board = db.session.get(Board, board_id) if board_id else None
    if board is None:
        return None

    columns = (
        BoardColumn.query
        .filter_by(board_id=board.id)
        .order_by(BoardColumn.position)
        .all()
    )
    column_ids = [c.id for c in columns]

    cards = []
    if column_ids:
        cards = (
            Card.query
            .filter(Card.column_id.in_(column_ids))
            .order_by(Card.position)
            .all()
        )
    card_ids = [c.id for c in cards]

    subtasks, attachments, comments, activities, links = [], [], [], [], []
    if card_ids:
        subtasks = (
            Subtask.query.filter(Subtask.card_id.in_(card_ids))
            .order_by(Subtask.position).all()
        )
        attachments = (
            Attachment.query.filter(Attachment.card_id.in_(card_ids))
            .order_by(Attachment.created_at).all()
        )
        comments = (
            Comment.query.filter(Comment.card_id.in_(card_ids))
            .order_by(Comment.created_at).all()
        )
        activities = (
            Activity.query.filter(Activity.card_id.in_(card_ids))
            .order_by(Activity.created_at.desc()).all()
        )
        links = CardLabel.query.filter(CardLabel.card_id.in_(card_ids)).all()

    labels = Label.query.filter_by(board_id=board.id).order_by(Label.text).all()
    labels_by_id = {label.id: _label_dict(label) for label in labels}

    labels_by_card = {}
    for link in links:
        label = labels_by_id.get(link.label_id)
        if label is not None:
            labels_by_card.setdefault(link.card_id, []).append(label)

    subtasks_by_card = _group_by_card(subtasks)
    attachments_by_card = _group_by_card(attachments)
    comments_by_card = _group_by_card(comments)
    activities_by_card = _group_by_card(activities)

    cards_by_column = {}
    for card in cards:
        card_subtasks = [_subtask_dict(s) for s in subtasks_by_card.get(card.id, [])]
        done = sum(1 for s in card_subtasks if s["is_completed"])
        total = len(card_subtasks)
        cards_by_column.setdefault(card.column_id, []).append({
            "id": card.id,
            "column_id": card.column_id,
            "title": card.title,
            "description": card.description or "",
            "position": card.position,
            "due_date": _iso(card.due_date),
            "priority": card.priority or "medium",
            "assigned_to": card.assigned_to,
            "assignee": _profile_dict(card.assignee),
            "created_at": _iso(card.created_at),
            "updated_at": _iso(card.updated_at),
            "labels": labels_by_card.get(card.id, []),
            "subtasks": card_subtasks,
            "subtask_total": total,
            "subtask_done": done,
            "progress": int(done * 100 / total) if total else 0,
            "attachments": [_attachment_dict(a) for a in attachments_by_card.get(card.id, [])],
            "comments": [_comment_dict(c) for c in comments_by_card.get(card.id, [])],
            "activities": [_activity_dict(a) for a in activities_by_card.get(card.id, [])],
        })

    column_dicts = []
    for col in columns:
        col_cards = cards_by_column.get(col.id, [])
        column_dicts.append({
            "id": col.id,
            "board_id": col.board_id,
            "title": col.title,
            "position": col.position,
            "wip_limit": col.wip_limit,
            "card_count": len(col_cards),
            "cards": col_cards,
            **wip_status(len(col_cards), col.wip_limit),
        })

    return {
        "id": board.id,
        "title": board.title,
        "owner_id": board.owner_id,
        "org_id": board.org_id,
        "assigned_to": board.assigned_to,
        "board_type": board.board_type,
        "created_at": _iso(board.created_at),
        "updated_at": _iso(board.updated_at),
        "columns": column_dicts,
        "labels": list(labels_by_id.values()),
    }


def board_members(board):
    """Profiles that can be assigned cards on the board."""
    if board.org_id:
        return (
            Profile.query
            .join(OrganizationMember, OrganizationMember.user_id == Profile.id)
            .filter(OrganizationMember.org_id == board.org_id)
            .order_by(Profile.full_name)
            .all()
        )
    ids = {i for i in (board.owner_id, board.assigned_to) if i}
    if not ids:
        return []
    return Profile.query.filter(Profile.id.in_(ids)).order_by(Profile.full_name).all()


def board_activities(board_id, limit=50):
    rows = (
        Activity.query
        .filter_by(board_id=board_id)
        .order_by(Activity.created_at.desc())
        .limit(limit)
        .all()
    )
    return [_activity_dict(a) for a in rows]


# ──────────────────────────────────────────────
# Boards
# ──────────────────────────────────────────────

def _boards_with_assigned_cards(profile):
    rows = (
        db.session.query(BoardColumn.board_id)
        .join(Card, Card.column_id == BoardColumn.id)
        .filter(Card.assigned_to == profile.id)
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def list_boards(profile, org=None):
    """Boards visible from the current context, newest first.

    Org context: every board of the org. Personal context: boards the
    profile owns or is assigned to.
    """
    query = Board.query
    if org is not None:
        query = query.filter(Board.org_id == org.id)
    else:
        query = query.filter(
            or_(Board.owner_id == profile.id, Board.assigned_to == profile.id)
        )
    boards = query.order_by(Board.created_at.desc()).all()

    assigned_ids = _boards_with_assigned_cards(profile)
    result = []
    for board in boards:
        has_assigned = board.id in assigned_ids
        if board.owner_id == profile.id:
            board_type = "personal"
        elif has_assigned:
            board_type = "assigned"
        else:
            board_type = board.board_type
        result.append({
            "id": board.id,
            "title": board.title,
            "owner_id": board.owner_id,
            "org_id": board.org_id,
            "assigned_to": board.assigned_to,
            "board_type": board_type,
            "has_assigned_cards": has_assigned,
            "created_at": board.created_at,
            "updated_at": board.updated_at,
        })
    return result


def filter_boards(boards, board_filter):
    if board_filter == "personal":
        return [b for b in boards if b["board_type"] == "personal"]
    if board_filter == "assigned":
        return [
            b for b in boards
            if b["board_type"] == "assigned" or b["has_assigned_cards"]
        ]
    return list(boards)


def create_board(title, owner, org_id=None, template_id=None):
    """Create a board with the template's columns, or the default three."""
    title = _sanitize(title)
    if not title:
        raise ValueError("Board title is required.")

    columns_config = [{"title": t, "wip_limit": None} for t in DEFAULT_COLUMNS]
    if template_id:
        template = _get(BoardTemplate, template_id, "Template")
        columns_config = template.columns_config or columns_config

    board = Board(title=title, owner_id=owner.id, org_id=org_id, board_type="personal")
    db.session.add(board)
    db.session.flush()

    for position, col in enumerate(columns_config):
        db.session.add(BoardColumn(
            board_id=board.id,
            title=col.get("title") or f"Column {position + 1}",
            position=position,
            wip_limit=col.get("wip_limit"),
        ))
    db.session.flush()

    logger.info(f"Board created: {board.title} ({board.id}) by {owner.email}")
    return board


def update_board(board_id, title):
    board = _get(Board, board_id, "Board")
    title = _sanitize(title)
    if not title:
        raise ValueError("Board title is required.")
    board.title = title
    board.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return board


def delete_board(board_id):
    board = _get(Board, board_id, "Board")
    db.session.delete(board)
    db.session.flush()
    logger.info(f"Board deleted: {board_id}")


def can_access_board(profile, board):
    """Owner, board assignee, org member, or assignee of one of its cards."""
    if profile is None or board is None or not profile.is_authenticated:
        return False
    if profile.id in (board.owner_id, board.assigned_to):
        return True
    if board.org_id and OrganizationMember.query.filter_by(
        org_id=board.org_id, user_id=profile.id
    ).first():
        return True
    return (
        db.session.query(Card.id)
        .join(BoardColumn, Card.column_id == BoardColumn.id)
        .filter(BoardColumn.board_id == board.id, Card.assigned_to == profile.id)
        .first()
        is not None
    )


def list_templates():
    return BoardTemplate.query.order_by(BoardTemplate.is_default.desc(), BoardTemplate.name).all()


# ──────────────────────────────────────────────
# Columns
# ──────────────────────────────────────────────

def _parse_wip_limit(value):
    if value in (None, "", 0, "0"):
        return None
    try:
        limit = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError("WIP limit must be a whole number.") from e
    if limit < 1:
        raise ValueError("WIP limit must be at least 1.")
    return limit


def add_column(board_id, title, actor=None):
    board = _get(Board, board_id, "Board")
    title = _sanitize(title)
    if not title:
        raise ValueError("Column title is required.")

    max_pos = (
        db.session.query(db.func.max(BoardColumn.position))
        .filter(BoardColumn.board_id == board.id)
        .scalar()
    )
    col = BoardColumn(
        board_id=board.id,
        title=title,
        position=(max_pos if max_pos is not None else -1) + 1,
    )
    db.session.add(col)
    db.session.flush()

    log_activity(board.id, None, "create_column", {"column_title": col.title}, actor)
    return col


def update_column(column_id, title=None, wip_limit=_UNSET):
    col = _get(BoardColumn, column_id, "Column")
    if title is not None:
        title = _sanitize(title)
        if not title:
            raise ValueError("Column title is required.")
        col.title = title
    if wip_limit is not _UNSET:
        col.wip_limit = _parse_wip_limit(wip_limit)
    db.session.flush()
    return col


def delete_column(column_id):
    col = _get(BoardColumn, column_id, "Column")
    board_id = col.board_id
    db.session.delete(col)
    db.session.flush()
    _renumber(
        BoardColumn.query.filter_by(board_id=board_id).order_by(BoardColumn.position).all()
    )


def _renumber(items):
    for i, item in enumerate(items):
        if item.position != i:
            item.position = i
    db.session.flush()


def reorder_column(column_id, new_position):
    col = _get(BoardColumn, column_id, "Column")
    siblings = (
        BoardColumn.query
        .filter(BoardColumn.board_id == col.board_id, BoardColumn.id != col.id)
        .order_by(BoardColumn.position)
        .all()
    )
    index = max(0, min(int(new_position), len(siblings)))
    siblings.insert(index, col)
    _renumber(siblings)
    return col


def reorder_columns(board_id, column_ids):
    board = _get(Board, board_id, "Board")
    columns = {c.id: c for c in BoardColumn.query.filter_by(board_id=board.id).all()}
    ordered = [columns[cid] for cid in column_ids if cid in columns]
    # Columns missing from the request keep their relative order at the end
    ordered += sorted(
        (c for cid, c in columns.items() if cid not in column_ids),
        key=lambda c: c.position,
    )
    _renumber(ordered)


# ──────────────────────────────────────────────
# Cards
# ──────────────────────────────────────────────

def _parse_due_date(value):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError("Due date must be an ISO date (YYYY-MM-DD).") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def add_card(column_id, title, actor=None, description=None, priority="medium"):
    col = _get(BoardColumn, column_id, "Column")
    title = _sanitize(title)
    if not title:
        raise ValueError("Card title is required.")
    if priority not in Card.PRIORITIES:
        raise ValueError(f"Invalid priority: {priority}")

    max_pos = (
        db.session.query(db.func.max(Card.position))
        .filter(Card.column_id == col.id)
        .scalar()
    )
    card = Card(
        column_id=col.id,
        title=title,
        description=_sanitize(description) or None,
        priority=priority,
        position=(max_pos if max_pos is not None else -1) + 1,
    )
    db.session.add(card)
    db.session.flush()

    log_activity(col.board_id, card.id, "create_card",
                 {"card_title": card.title, "column_title": col.title}, actor)
    return card


def update_card(card_id, updates, actor=None):
    """Apply a partial update (title, description, due_date, priority)."""
    card = _get(Card, card_id, "Card")
    changed = []

    if "title" in updates:
        title = _sanitize(updates["title"])
        if not title:
            raise ValueError("Card title is required.")
        card.title = title
        changed.append("title")
    if "description" in updates:
        card.description = _sanitize(updates["description"]) or None
        changed.append("description")
    if "due_date" in updates:
        card.due_date = _parse_due_date(updates["due_date"])
        changed.append("due_date")
    if "priority" in updates:
        if updates["priority"] not in Card.PRIORITIES:
            raise ValueError(f"Invalid priority: {updates['priority']}")
        card.priority = updates["priority"]
        changed.append("priority")

    if not changed:
        return card

    card.updated_at = datetime.now(timezone.utc)
    db.session.flush()

    log_activity(card.column.board_id, card.id, "update_card",
                 {"card_title": card.title, "fields": changed}, actor)
    return card


def delete_card(card_id, actor=None):
    card = _get(Card, card_id, "Card")
    board_id = card.column.board_id
    column_id = card.column_id
    title = card.title

    # Detach the trail explicitly; SQLite does not enforce ON DELETE SET NULL
    Activity.query.filter_by(card_id=card.id).update({"card_id": None})
    db.session.delete(card)
    db.session.flush()
    _renumber(Card.query.filter_by(column_id=column_id).order_by(Card.position).all())

    log_activity(board_id, None, "delete_card", {"card_title": title}, actor)


def move_card(card_id, target_column_id, new_position, actor=None):
    """Insert the card at `new_position` in the target column.

    Both the target and (when different) the source column are renumbered
    so positions stay contiguous. Moves across boards are refused.
    """
    card = _get(Card, card_id, "Card")
    target = _get(BoardColumn, target_column_id, "Column")
    source = card.column
    if source.board_id != target.board_id:
        raise ValueError("Cards can only move within their board.")

    siblings = (
        Card.query
        .filter(Card.column_id == target.id, Card.id != card.id)
        .order_by(Card.position)
        .all()
    )
    index = max(0, min(int(new_position or 0), len(siblings)))
    card.column = target
    card.updated_at = datetime.now(timezone.utc)
    siblings.insert(index, card)
    _renumber(siblings)

    if source.id != target.id:
        _renumber(
            Card.query
            .filter(Card.column_id == source.id, Card.id != card.id)
            .order_by(Card.position)
            .all()
        )
        log_activity(target.board_id, card.id, "move_card", {
            "card_title": card.title,
            "from_column": source.title,
            "to_column": target.title,
        }, actor)
    return card


def move_card_direction(card_id, direction, actor=None):
    """Arrow navigation: move to the front of the adjacent column.

    Returns:
        dict with column_id, column_title and celebrate (target is a
        'done' lane).

    Raises:
        ValueError: On an unknown direction or at the board edge.
    """
    if direction not in ("left", "right"):
        raise ValueError(f"Invalid direction: {direction}")

    card = _get(Card, card_id, "Card")
    columns = (
        BoardColumn.query
        .filter_by(board_id=card.column.board_id)
        .order_by(BoardColumn.position)
        .all()
    )
    index = next(i for i, c in enumerate(columns) if c.id == card.column_id)
    target_index = index - 1 if direction == "left" else index + 1
    if target_index < 0:
        raise ValueError("The card is already in the first column.")
    if target_index >= len(columns):
        raise ValueError("The card is already in the last column.")

    target = columns[target_index]
    move_card(card.id, target.id, 0, actor)
    return {
        "column_id": target.id,
        "column_title": target.title,
        "celebrate": is_done_title(target.title),
    }


def assign_card(card_id, user_id, actor=None):
    card = _get(Card, card_id, "Card")
    assignee = _get(Profile, user_id, "User") if user_id else None

    card.assigned_to = assignee.id if assignee else None
    card.updated_at = datetime.now(timezone.utc)
    db.session.flush()

    log_activity(card.column.board_id, card.id, "assign_card", {
        "card_title": card.title,
        "assignee_id": assignee.id if assignee else None,
        "assignee_name": assignee.display_name if assignee else None,
    }, actor)
    return card


# ──────────────────────────────────────────────
# Labels
# ──────────────────────────────────────────────

def create_label(board_id, text, color=None):
    board = _get(Board, board_id, "Board")
    text = _sanitize(text)
    if not text:
        raise ValueError("Label text is required.")
    if not color or not _HEX_COLOR.match(color):
        color = Label.DEFAULT_COLOR

    label = Label(board_id=board.id, text=text[:100], color=color)
    db.session.add(label)
    db.session.flush()
    return label


def delete_label(label_id):
    label = _get(Label, label_id, "Label")
    db.session.delete(label)
    db.session.flush()


def toggle_card_label(card_id, label_id):
    """Attach the label if missing, detach it otherwise.

    Returns True when the label was added.
    """
    card = _get(Card, card_id, "Card")
    label = _get(Label, label_id, "Label")
    if label.board_id != card.column.board_id:
        raise ValueError("Label belongs to another board.")

    link = db.session.get(CardLabel, (card.id, label.id))
    if link is not None:
        db.session.delete(link)
        db.session.flush()
        return False

    db.session.add(CardLabel(card_id=card.id, label_id=label.id))
    db.session.flush()
    return True


# ──────────────────────────────────────────────
# Subtasks
# ──────────────────────────────────────────────

def add_subtask(card_id, title, actor=None):
    card = _get(Card, card_id, "Card")
    title = _sanitize(title)
    if not title:
        raise ValueError("Subtask title is required.")

    max_pos = (
        db.session.query(db.func.max(Subtask.position))
        .filter(Subtask.card_id == card.id)
        .scalar()
    )
    subtask = Subtask(
        card_id=card.id,
        title=title,
        position=(max_pos if max_pos is not None else -1) + 1,
    )
    db.session.add(subtask)
    db.session.flush()

    log_activity(card.column.board_id, card.id, "add_subtask",
                 {"card_title": card.title, "subtask_title": subtask.title}, actor)
    return subtask


def toggle_subtask(subtask_id, is_completed, actor=None):
    """Set a subtask's completion and run the done-column automation.

    Completing the last open subtask moves the card to the front of the
    board's 'done' lane, unless it is already there.

    Returns:
        dict: automation_message (str|None), moved_to_column_id (str|None)
    """
    subtask = _get(Subtask, subtask_id, "Subtask")
    card = subtask.card
    board_id = card.column.board_id

    subtask.is_completed = bool(is_completed)
    db.session.flush()

    log_activity(board_id, card.id, "toggle_subtask", {
        "card_title": card.title,
        "subtask_title": subtask.title,
        "is_completed": subtask.is_completed,
    }, actor)

    result = {"automation_message": None, "moved_to_column_id": None}
    if not subtask.is_completed:
        return result

    open_siblings = (
        Subtask.query
        .filter(
            Subtask.card_id == card.id,
            Subtask.id != subtask.id,
            Subtask.is_completed.is_(False),
        )
        .count()
    )
    if open_siblings:
        return result

    columns = (
        BoardColumn.query.filter_by(board_id=board_id).order_by(BoardColumn.position).all()
    )
    done_column = find_done_column(columns)
    if done_column is None or done_column.id == card.column_id:
        return result

    move_card(card.id, done_column.id, 0, actor)
    logger.info(f"Card {card.id} auto-moved to {done_column.title}")
    return {
        "automation_message": (
            f'All subtasks complete! "{card.title}" moved to {done_column.title}.'
        ),
        "moved_to_column_id": done_column.id,
    }


def delete_subtask(subtask_id):
    subtask = _get(Subtask, subtask_id, "Subtask")
    card_id = subtask.card_id
    db.session.delete(subtask)
    db.session.flush()
    _renumber(Subtask.query.filter_by(card_id=card_id).order_by(Subtask.position).all())


# ──────────────────────────────────────────────
# Comments
# ──────────────────────────────────────────────

def add_comment(card_id, content, actor=None):
    card = _get(Card, card_id, "Card")
    content = _sanitize(content)
    if not content:
        raise ValueError("Comment cannot be empty.")

    comment = Comment(
        card_id=card.id,
        user_id=actor.id if actor is not None else None,
        content=content,
    )
    db.session.add(comment)
    db.session.flush()

    log_activity(card.column.board_id, card.id, "add_comment",
                 {"card_title": card.title}, actor)
    return comment


def delete_comment(comment_id):
    comment = _get(Comment, comment_id, "Comment")
    db.session.delete(comment)
    db.session.flush()


# ──────────────────────────────────────────────
# Attachments
# ──────────────────────────────────────────────

def upload_attachment(card_id, file, actor=None):
    """Validate, upload to object storage and record the attachment row.

    Raises:
        ValueError: If the file fails validation.
        StorageError: If the object store rejects the upload.
    """
    card = _get(Card, card_id, "Card")
    ok, error = storage_service.validate_file(file)
    if not ok:
        raise ValueError(error)

    meta = storage_service.upload_file(file, card.id)
    attachment = Attachment(card_id=card.id, **meta)
    db.session.add(attachment)
    db.session.flush()

    log_activity(card.column.board_id, card.id, "upload_attachment",
                 {"card_title": card.title, "file_name": attachment.file_name}, actor)
    return attachment


def delete_attachment(attachment_id, actor=None):
    """Remove the stored object first, then the row."""
    attachment = _get(Attachment, attachment_id, "Attachment")
    card = attachment.card

    storage_service.delete_file(attachment.storage_path)
    db.session.delete(attachment)
    db.session.flush()

    log_activity(card.column.board_id, card.id, "delete_attachment",
                 {"card_title": card.title, "file_name": attachment.file_name}, actor)


def attachment_url(attachment_id):
    attachment = _get(Attachment, attachment_id, "Attachment")
    return storage_service.create_signed_url(attachment.storage_path)
