"""Tests for board_service — board state, mutations and the activity trail.

Covers:
- Boards (default columns, templates, listing per context, access checks)
- Columns (append, delete + renumber, reorder, WIP limits)
- Cards (create, update, move, arrow moves, delete keeps the trail)
- Labels, subtasks (done-column automation), comments, attachments
- The nested board view model
"""

import io
from unittest.mock import patch

import pytest
from werkzeug.datastructures import FileStorage

from taskboard.extensions import db
from taskboard.models.board import BoardColumn, BoardTemplate, CardLabel
from taskboard.models.card import Activity, Attachment, Card, Subtask
from taskboard.models.profile import Profile
from taskboard.services import board_service


def _titles(board_id):
    cols = (
        BoardColumn.query.filter_by(board_id=board_id)
        .order_by(BoardColumn.position)
        .all()
    )
    return [c.title for c in cols]


def _actions(board_id):
    return [a.action_type for a in Activity.query.filter_by(board_id=board_id).all()]


# ══════════════════════════════════════════════
#  BOARDS
# ══════════════════════════════════════════════

class TestBoards:

    def test_create_board_gets_default_columns(self, seed_data):
        board = board_service.create_board("Roadmap", seed_data["owner"])
        db.session.commit()

        cols = sorted(board.columns, key=lambda c: c.position)
        assert [c.title for c in cols] == ["To Do", "In Progress", "Done"]
        assert [c.position for c in cols] == [0, 1, 2]
        assert board.org_id is None
        assert board.board_type == "personal"

    def test_create_board_from_template(self, seed_data):
        template = BoardTemplate(
            name="Sprint",
            columns_config=[
                {"title": "Backlog", "wip_limit": None},
                {"title": "Review", "wip_limit": 2},
            ],
        )
        db.session.add(template)
        db.session.flush()

        board = board_service.create_board(
            "Sprint 1", seed_data["owner"], org_id=seed_data["org_id"], template_id=template.id
        )

        assert _titles(board.id) == ["Backlog", "Review"]
        review = BoardColumn.query.filter_by(board_id=board.id, title="Review").first()
        assert review.wip_limit == 2
        assert board.org_id == seed_data["org_id"]

    def test_create_board_requires_title(self, seed_data):
        with pytest.raises(ValueError, match="title is required"):
            board_service.create_board("   ", seed_data["owner"])

    def test_create_board_strips_html(self, seed_data):
        board = board_service.create_board("<b>Ops</b> board", seed_data["owner"])
        assert board.title == "Ops board"

    def test_update_and_delete_board(self, seed_data):
        board_service.update_board(seed_data["board_id"], "Relaunch")
        assert seed_data["board"].title == "Relaunch"

        board_service.delete_board(seed_data["board_id"])
        db.session.commit()
        assert BoardColumn.query.filter_by(board_id=seed_data["board_id"]).count() == 0
        assert db.session.get(Card, seed_data["card_id"]) is None

    def test_list_boards_org_context(self, seed_data):
        board_service.create_board("Private", seed_data["owner"])
        boards = board_service.list_boards(seed_data["owner"], seed_data["org"])
        assert [b["title"] for b in boards] == ["Launch"]

    def test_list_boards_personal_context(self, seed_data):
        board_service.create_board("Private", seed_data["owner"])
        titles = {b["title"] for b in board_service.list_boards(seed_data["owner"])}
        # Personal context lists owned boards, org or not
        assert titles == {"Launch", "Private"}

    def test_list_boards_marks_assigned_cards(self, seed_data):
        seed_data["card"].assigned_to = seed_data["member_id"]
        db.session.flush()

        boards = board_service.list_boards(seed_data["member"], seed_data["org"])
        assert boards[0]["has_assigned_cards"] is True
        assert boards[0]["board_type"] == "assigned"

        assert board_service.filter_boards(boards, "assigned") == boards
        assert board_service.filter_boards(boards, "personal") == []

    def test_can_access_board(self, seed_data):
        stranger = Profile(email="stranger@example.com", full_name="Stranger")
        db.session.add(stranger)
        db.session.flush()
        board = seed_data["board"]

        assert board_service.can_access_board(seed_data["owner"], board)
        assert board_service.can_access_board(seed_data["member"], board)
        assert not board_service.can_access_board(stranger, board)

        seed_data["card"].assigned_to = stranger.id
        db.session.flush()
        assert board_service.can_access_board(stranger, board)

    def test_board_members_of_org_board(self, seed_data):
        ids = {p.id for p in board_service.board_members(seed_data["board"])}
        assert ids == {seed_data["owner_id"], seed_data["member_id"]}

    def test_board_members_of_personal_board(self, seed_data):
        board = board_service.create_board("Solo", seed_data["owner"])
        ids = [p.id for p in board_service.board_members(board)]
        assert ids == [seed_data["owner_id"]]


# ══════════════════════════════════════════════
#  COLUMNS
# ══════════════════════════════════════════════

class TestColumns:

    def test_add_column_appends_and_logs(self, seed_data):
        col = board_service.add_column(seed_data["board_id"], "Blocked", seed_data["owner"])
        assert col.position == 3
        assert "create_column" in _actions(seed_data["board_id"])

    def test_add_column_requires_title(self, seed_data):
        with pytest.raises(ValueError):
            board_service.add_column(seed_data["board_id"], "")

    def test_add_column_unknown_board(self, seed_data):
        with pytest.raises(ValueError, match="Board not found"):
            board_service.add_column("missing", "Blocked")

    def test_delete_column_renumbers(self, seed_data):
        board_service.delete_column(seed_data["doing"].id)
        cols = (
            BoardColumn.query.filter_by(board_id=seed_data["board_id"])
            .order_by(BoardColumn.position).all()
        )
        assert [(c.title, c.position) for c in cols] == [("To Do", 0), ("Done", 1)]

    def test_delete_column_cascades_cards(self, seed_data):
        board_service.delete_column(seed_data["todo"].id)
        db.session.commit()
        assert db.session.get(Card, seed_data["card_id"]) is None

    def test_reorder_column(self, seed_data):
        board_service.reorder_column(seed_data["done"].id, 0)
        assert _titles(seed_data["board_id"]) == ["Done", "To Do", "In Progress"]

    def test_reorder_column_clamps_position(self, seed_data):
        board_service.reorder_column(seed_data["todo"].id, 99)
        assert _titles(seed_data["board_id"]) == ["In Progress", "Done", "To Do"]

    def test_reorder_columns_by_id_list(self, seed_data):
        board_service.reorder_columns(
            seed_data["board_id"], [seed_data["done"].id, seed_data["todo"].id]
        )
        assert _titles(seed_data["board_id"]) == ["Done", "To Do", "In Progress"]

    def test_update_column_wip_limit(self, seed_data):
        col = board_service.update_column(seed_data["doing"].id, wip_limit="3")
        assert col.wip_limit == 3

        col = board_service.update_column(seed_data["doing"].id, wip_limit="")
        assert col.wip_limit is None

    def test_update_column_rejects_bad_wip_limit(self, seed_data):
        with pytest.raises(ValueError, match="whole number"):
            board_service.update_column(seed_data["doing"].id, wip_limit="many")
        with pytest.raises(ValueError, match="at least 1"):
            board_service.update_column(seed_data["doing"].id, wip_limit=-2)

    def test_update_column_title_keeps_wip_limit(self, seed_data):
        seed_data["doing"].wip_limit = 4
        col = board_service.update_column(seed_data["doing"].id, title="Doing")
        assert col.title == "Doing"
        assert col.wip_limit == 4


class TestWipStatus:

    def test_no_limit(self):
        assert board_service.wip_status(10, None) == {
            "is_over_limit": False,
            "is_at_limit": False,
            "is_near_limit": False,
        }

    def test_near_limit(self):
        status = board_service.wip_status(2, 3)
        assert status["is_near_limit"] is True
        assert status["is_over_limit"] is False

    def test_at_limit_counts_as_full(self):
        status = board_service.wip_status(3, 3)
        assert status["is_at_limit"] is True
        assert status["is_over_limit"] is True

    def test_over_limit(self):
        status = board_service.wip_status(5, 3)
        assert status["is_over_limit"] is True
        assert status["is_at_limit"] is False


# ══════════════════════════════════════════════
#  CARDS
# ══════════════════════════════════════════════

class TestCards:

    def test_add_card_appends_and_logs(self, seed_data):
        card = board_service.add_card(seed_data["todo"].id, "Ship it", seed_data["owner"])
        assert card.position == 1
        assert card.priority == "medium"

        activity = Activity.query.filter_by(card_id=card.id, action_type="create_card").one()
        assert activity.user_id == seed_data["owner_id"]
        assert activity.details["user_name"] == "Olivia Owner"
        assert activity.details["column_title"] == "To Do"

    def test_add_card_rejects_unknown_priority(self, seed_data):
        with pytest.raises(ValueError, match="Invalid priority"):
            board_service.add_card(seed_data["todo"].id, "Ship it", priority="urgent")

    def test_update_card_fields(self, seed_data):
        card = board_service.update_card(
            seed_data["card_id"],
            {"title": "Write API docs", "priority": "high", "due_date": "2026-11-01"},
            seed_data["owner"],
        )
        assert card.title == "Write API docs"
        assert card.priority == "high"
        assert card.due_date.date().isoformat() == "2026-11-01"

        activity = Activity.query.filter_by(action_type="update_card").one()
        assert set(activity.details["fields"]) == {"title", "priority", "due_date"}

    def test_update_card_clears_due_date(self, seed_data):
        board_service.update_card(seed_data["card_id"], {"due_date": "2026-11-01"})
        card = board_service.update_card(seed_data["card_id"], {"due_date": ""})
        assert card.due_date is None

    def test_update_card_rejects_bad_date(self, seed_data):
        with pytest.raises(ValueError, match="ISO date"):
            board_service.update_card(seed_data["card_id"], {"due_date": "next week"})

    def test_update_card_without_changes_logs_nothing(self, seed_data):
        board_service.update_card(seed_data["card_id"], {})
        assert "update_card" not in _actions(seed_data["board_id"])

    def test_move_card_across_columns(self, seed_data):
        other = board_service.add_card(seed_data["todo"].id, "Second", seed_data["owner"])
        board_service.add_card(seed_data["doing"].id, "Busy", seed_data["owner"])

        board_service.move_card(seed_data["card_id"], seed_data["doing"].id, 0, seed_data["owner"])

        doing = Card.query.filter_by(column_id=seed_data["doing"].id).order_by(Card.position).all()
        assert [(c.title, c.position) for c in doing] == [("Write docs", 0), ("Busy", 1)]
        # Source column closes the gap
        assert other.position == 0

        move = Activity.query.filter_by(action_type="move_card").one()
        assert move.details["from_column"] == "To Do"
        assert move.details["to_column"] == "In Progress"

    def test_move_card_within_column_does_not_log(self, seed_data):
        board_service.add_card(seed_data["todo"].id, "Second")
        board_service.move_card(seed_data["card_id"], seed_data["todo"].id, 1)

        todo = Card.query.filter_by(column_id=seed_data["todo"].id).order_by(Card.position).all()
        assert [c.title for c in todo] == ["Second", "Write docs"]
        assert "move_card" not in _actions(seed_data["board_id"])

    def test_move_card_to_other_board_refused(self, seed_data):
        other = board_service.create_board("Elsewhere", seed_data["owner"])
        target = sorted(other.columns, key=lambda c: c.position)[0]
        with pytest.raises(ValueError, match="within their board"):
            board_service.move_card(seed_data["card_id"], target.id, 0)

    def test_move_card_direction_right_into_done_celebrates(self, seed_data):
        board_service.move_card(seed_data["card_id"], seed_data["doing"].id, 0)
        result = board_service.move_card_direction(seed_data["card_id"], "right")
        assert result["column_id"] == seed_data["done"].id
        assert result["celebrate"] is True

    def test_move_card_direction_right_plain(self, seed_data):
        result = board_service.move_card_direction(seed_data["card_id"], "right")
        assert result["column_title"] == "In Progress"
        assert result["celebrate"] is False

    def test_move_card_direction_at_edges(self, seed_data):
        with pytest.raises(ValueError, match="first column"):
            board_service.move_card_direction(seed_data["card_id"], "left")

        board_service.move_card(seed_data["card_id"], seed_data["done"].id, 0)
        with pytest.raises(ValueError, match="last column"):
            board_service.move_card_direction(seed_data["card_id"], "right")

    def test_move_card_direction_invalid(self, seed_data):
        with pytest.raises(ValueError, match="Invalid direction"):
            board_service.move_card_direction(seed_data["card_id"], "up")

    def test_delete_card_keeps_activity_trail(self, seed_data):
        card = board_service.add_card(seed_data["todo"].id, "Temporary", seed_data["owner"])
        card_id = card.id
        board_service.add_comment(card_id, "note", seed_data["owner"])

        board_service.delete_card(card_id, seed_data["owner"])
        db.session.commit()

        assert db.session.get(Card, card_id) is None
        created = Activity.query.filter_by(action_type="create_card").filter(
            Activity.details.isnot(None)
        ).all()
        assert any(a.details.get("card_title") == "Temporary" and a.card_id is None for a in created)

        deleted = Activity.query.filter_by(action_type="delete_card").one()
        assert deleted.card_id is None
        assert deleted.details["card_title"] == "Temporary"

    def test_delete_card_renumbers_column(self, seed_data):
        board_service.add_card(seed_data["todo"].id, "Second")
        board_service.delete_card(seed_data["card_id"])
        remaining = Card.query.filter_by(column_id=seed_data["todo"].id).all()
        assert [(c.title, c.position) for c in remaining] == [("Second", 0)]

    def test_assign_and_unassign(self, seed_data):
        board_service.assign_card(seed_data["card_id"], seed_data["member_id"], seed_data["owner"])
        assert seed_data["card"].assigned_to == seed_data["member_id"]

        board_service.assign_card(seed_data["card_id"], None, seed_data["owner"])
        assert seed_data["card"].assigned_to is None

        names = [
            a.details["assignee_name"]
            for a in Activity.query.filter_by(action_type="assign_card").all()
        ]
        assert sorted(names, key=str) == sorted(["Max Member", None], key=str)

    def test_assign_unknown_user(self, seed_data):
        with pytest.raises(ValueError, match="User not found"):
            board_service.assign_card(seed_data["card_id"], "nobody")


# ══════════════════════════════════════════════
#  LABELS
# ══════════════════════════════════════════════

class TestLabels:

    def test_create_label_falls_back_to_default_color(self, seed_data):
        label = board_service.create_label(seed_data["board_id"], "Docs", "red")
        assert label.color == "#6366f1"

    def test_create_label_keeps_hex_color(self, seed_data):
        label = board_service.create_label(seed_data["board_id"], "Docs", "#14b8a6")
        assert label.color == "#14b8a6"

    def test_toggle_card_label(self, seed_data):
        label_id = seed_data["label"].id
        assert board_service.toggle_card_label(seed_data["card_id"], label_id) is True
        assert db.session.get(CardLabel, (seed_data["card_id"], label_id)) is not None

        assert board_service.toggle_card_label(seed_data["card_id"], label_id) is False
        assert db.session.get(CardLabel, (seed_data["card_id"], label_id)) is None

    def test_toggle_label_from_other_board(self, seed_data):
        other = board_service.create_board("Elsewhere", seed_data["owner"])
        label = board_service.create_label(other.id, "Foreign")
        with pytest.raises(ValueError, match="another board"):
            board_service.toggle_card_label(seed_data["card_id"], label.id)

    def test_delete_label_detaches_cards(self, seed_data):
        label_id = seed_data["label"].id
        board_service.toggle_card_label(seed_data["card_id"], label_id)
        board_service.delete_label(label_id)
        db.session.commit()
        assert CardLabel.query.filter_by(label_id=label_id).count() == 0


# ══════════════════════════════════════════════
#  SUBTASKS / AUTOMATION
# ══════════════════════════════════════════════

class TestSubtasks:

    def test_add_subtask_positions(self, seed_data):
        first = board_service.add_subtask(seed_data["card_id"], "Outline")
        second = board_service.add_subtask(seed_data["card_id"], "Draft")
        assert (first.position, second.position) == (0, 1)

    def test_completing_last_subtask_moves_card_to_done(self, seed_data):
        a = board_service.add_subtask(seed_data["card_id"], "Outline")
        b = board_service.add_subtask(seed_data["card_id"], "Draft")

        result = board_service.toggle_subtask(a.id, True, seed_data["owner"])
        assert result == {"automation_message": None, "moved_to_column_id": None}
        assert seed_data["card"].column_id == seed_data["todo"].id

        result = board_service.toggle_subtask(b.id, True, seed_data["owner"])
        assert result["moved_to_column_id"] == seed_data["done"].id
        assert "Done" in result["automation_message"]

        card = db.session.get(Card, seed_data["card_id"])
        assert card.column_id == seed_data["done"].id
        assert card.position == 0
        assert "move_card" in _actions(seed_data["board_id"])

    def test_automation_skipped_when_already_done(self, seed_data):
        board_service.move_card(seed_data["card_id"], seed_data["done"].id, 0)
        subtask = board_service.add_subtask(seed_data["card_id"], "Only")

        result = board_service.toggle_subtask(subtask.id, True)
        assert result["moved_to_column_id"] is None

    def test_automation_skipped_without_done_column(self, seed_data):
        seed_data["done"].title = "Shipped"
        db.session.flush()
        subtask = board_service.add_subtask(seed_data["card_id"], "Only")

        result = board_service.toggle_subtask(subtask.id, True)
        assert result["moved_to_column_id"] is None
        assert seed_data["card"].column_id == seed_data["todo"].id

    def test_unchecking_never_moves(self, seed_data):
        subtask = board_service.add_subtask(seed_data["card_id"], "Only")
        result = board_service.toggle_subtask(subtask.id, False)
        assert result["moved_to_column_id"] is None
        assert db.session.get(Subtask, subtask.id).is_completed is False

    def test_find_done_column_matches_keywords(self, seed_data):
        columns = [
            BoardColumn(title="Backlog"),
            BoardColumn(title="Tamamlandı"),
            BoardColumn(title="Done"),
        ]
        assert board_service.find_done_column(columns).title == "Tamamlandı"
        assert board_service.find_done_column(columns[:1]) is None

    def test_delete_subtask_renumbers(self, seed_data):
        a = board_service.add_subtask(seed_data["card_id"], "Outline")
        b = board_service.add_subtask(seed_data["card_id"], "Draft")
        board_service.delete_subtask(a.id)
        assert b.position == 0


# ══════════════════════════════════════════════
#  COMMENTS / ATTACHMENTS / ACTIVITY
# ══════════════════════════════════════════════

class TestCommentsAndAttachments:

    def test_add_comment_sanitizes(self, seed_data):
        comment = board_service.add_comment(
            seed_data["card_id"], "<script>x</script>Looks good", seed_data["owner"]
        )
        assert "<script>" not in comment.content
        assert comment.content.endswith("Looks good")
        assert comment.user_id == seed_data["owner_id"]

    def test_add_empty_comment(self, seed_data):
        with pytest.raises(ValueError, match="cannot be empty"):
            board_service.add_comment(seed_data["card_id"], "   ")

    @patch("taskboard.services.board_service.storage_service.upload_file")
    def test_upload_attachment(self, mock_upload, seed_data):
        mock_upload.return_value = {
            "file_name": "spec.pdf",
            "storage_path": f"{seed_data['card_id']}/abc.pdf",
            "file_type": "application/pdf",
            "file_size": 4,
        }
        file = FileStorage(stream=io.BytesIO(b"%PDF"), filename="spec.pdf")

        attachment = board_service.upload_attachment(seed_data["card_id"], file, seed_data["owner"])

        assert attachment.file_name == "spec.pdf"
        assert mock_upload.called
        assert "upload_attachment" in _actions(seed_data["board_id"])

    def test_upload_empty_file_rejected(self, seed_data):
        file = FileStorage(stream=io.BytesIO(b""), filename="empty.txt")
        with pytest.raises(ValueError, match="empty"):
            board_service.upload_attachment(seed_data["card_id"], file)

    @patch("taskboard.services.board_service.storage_service.delete_file")
    def test_delete_attachment_removes_object_first(self, mock_delete, seed_data):
        attachment = Attachment(
            card_id=seed_data["card_id"],
            file_name="a.txt",
            file_size=1,
            storage_path="card/a.txt",
        )
        db.session.add(attachment)
        db.session.flush()

        board_service.delete_attachment(attachment.id, seed_data["owner"])

        mock_delete.assert_called_once_with("card/a.txt")
        assert Attachment.query.count() == 0

    def test_log_activity_skips_unknown_type(self, seed_data):
        assert board_service.log_activity(seed_data["board_id"], None, "teleport_card") is None
        assert Activity.query.count() == 0


# ══════════════════════════════════════════════
#  VIEW MODEL
# ══════════════════════════════════════════════

class TestBoardData:

    def test_missing_board(self, seed_data):
        assert board_service.get_board_data("missing") is None

    def test_nested_structure(self, seed_data):
        board_service.toggle_card_label(seed_data["card_id"], seed_data["label"].id)
        a = board_service.add_subtask(seed_data["card_id"], "Outline")
        board_service.add_subtask(seed_data["card_id"], "Draft")
        board_service.toggle_subtask(a.id, True)
        board_service.add_comment(seed_data["card_id"], "First!", seed_data["member"])
        seed_data["doing"].wip_limit = 1
        db.session.commit()

        data = board_service.get_board_data(seed_data["board_id"])

        assert data["title"] == "Launch"
        assert [c["title"] for c in data["columns"]] == ["To Do", "In Progress", "Done"]

        card = data["columns"][0]["cards"][0]
        assert card["labels"][0]["text"] == "Bug"
        assert card["subtask_total"] == 2
        assert card["subtask_done"] == 1
        assert card["progress"] == 50
        assert card["comments"][0]["author_name"] == "Max Member"
        assert card["activities"]

        doing = data["columns"][1]
        assert doing["wip_limit"] == 1
        assert doing["card_count"] == 0
        assert doing["is_near_limit"] is True

    def test_board_activities_newest_first_limit(self, seed_data):
        for i in range(3):
            board_service.add_card(seed_data["todo"].id, f"Card {i}", seed_data["owner"])
        assert len(board_service.board_activities(seed_data["board_id"], limit=2)) == 2
