"""Board blueprint — the board page.

Route Map:
  GET /board/<id>                     — Board with filters (?q=&label=&priority=&date=)
  GET /board/<id>?card=<card_id>      — ... with the card detail panel open
  GET /board/<id>?panel=deadlines     — ... with the deadline tracker open
"""

from datetime import date

from flask import Blueprint, abort, render_template, request
from flask_login import current_user

from taskboard.constants import DEFAULT_LABEL_COLORS, DESCRIPTION_TEMPLATES
from taskboard.decorators import setup_required
from taskboard.extensions import db
from taskboard.models.board import Board
from taskboard.services import board_service, filter_service

board_bp = Blueprint("board", __name__)


@board_bp.route("/board/<board_id>")
@setup_required
def board_page(board_id):
    board = db.session.get(Board, board_id)
    if board is None:
        abort(404)
    if not board_service.can_access_board(current_user, board):
        abort(403)

    data = board_service.get_board_data(board.id)
    today = date.today()

    filters = filter_service.parse_filters(request.args)
    columns = filter_service.apply_filters(data["columns"], filters, today)

    selected_card = None
    selected_column = None
    card_id = request.args.get("card")
    if card_id:
        for col in data["columns"]:
            for card in col["cards"]:
                if card["id"] == card_id:
                    selected_card, selected_column = card, col

    deadlines = None
    if request.args.get("panel") == "deadlines":
        deadlines = filter_service.deadline_groups(data["columns"], today)

    return render_template(
        "board.html",
        board=data,
        columns=columns,
        filters=filters,
        has_filters=filter_service.has_active_filters(filters),
        total_cards=filter_service.count_cards(data["columns"]),
        filtered_cards=filter_service.count_cards(columns),
        selected_card=selected_card,
        selected_column=selected_column,
        deadlines=deadlines,
        deadline_tabs=filter_service.DEADLINE_TABS,
        format_days_remaining=filter_service.format_days_remaining,
        members=board_service.board_members(board),
        activities=board_service.board_activities(board.id),
        description_templates=DESCRIPTION_TEMPLATES,
        label_colors=DEFAULT_LABEL_COLORS,
        date_filters=filter_service.DATE_FILTERS,
    )
