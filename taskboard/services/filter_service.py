"""Filter service — card filtering, search and the deadline tracker.

Works on the view model from board_service.get_board_data(); nothing here
touches the database. Dates are compared as calendar days.

Filter state is a plain dict:
    {"search_query": str, "labels": [id], "priorities": [str], "date_filter": str}
"""

from datetime import date, datetime, timedelta

from taskboard.models.card import Card

DATE_FILTERS = ["all", "today", "week", "overdue", "no-date"]

DEADLINE_TABS = ["todo", "inprogress", "done"]

_DONE_WORDS = ("done", "tamamlan", "bitti")
_IN_PROGRESS_WORDS = ("progress", "devam", "yapılıyor")


def empty_filters():
    return {"search_query": "", "labels": [], "priorities": [], "date_filter": "all"}


def _getlist(args, key):
    if hasattr(args, "getlist"):
        values = args.getlist(key)
    else:
        values = args.get(key) or []
        if isinstance(values, str):
            values = [values]
    # Accept both ?label=a&label=b and ?label=a,b
    result = []
    for value in values:
        result.extend(v for v in str(value).split(",") if v)
    return result


def parse_filters(args):
    """Build filter state from request args (or any mapping)."""
    state = empty_filters()
    state["search_query"] = (args.get("q") or "").strip()
    state["labels"] = _getlist(args, "label")
    state["priorities"] = [p for p in _getlist(args, "priority") if p in Card.PRIORITIES]
    date_filter = args.get("date") or "all"
    state["date_filter"] = date_filter if date_filter in DATE_FILTERS else "all"
    return state


def has_active_filters(state):
    return bool(
        state["search_query"]
        or state["labels"]
        or state["priorities"]
        or state["date_filter"] != "all"
    )


def due_day(card):
    """Calendar day of a card's due date, or None."""
    value = card.get("due_date")
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def _matches(card, state, today):
    query = state["search_query"].lower()
    if query:
        in_title = query in (card.get("title") or "").lower()
        in_desc = query in (card.get("description") or "").lower()
        if not in_title and not in_desc:
            return False

    if state["labels"]:
        card_label_ids = {label["id"] for label in card.get("labels", [])}
        if not card_label_ids.intersection(state["labels"]):
            return False

    if state["priorities"] and card.get("priority") not in state["priorities"]:
        return False

    date_filter = state["date_filter"]
    if date_filter == "all":
        return True

    day = due_day(card)
    if date_filter == "no-date":
        return day is None
    if day is None:
        return False
    if date_filter == "overdue":
        return day < today
    if date_filter == "today":
        return day == today
    if date_filter == "week":
        return today <= day <= today + timedelta(days=7)
    return True


def apply_filters(columns, state, today=None):
    """Columns with their cards narrowed to the matching ones.

    Column-level fields (WIP flags, card_count) keep describing the
    unfiltered column.
    """
    if not has_active_filters(state):
        return columns

    today = today or date.today()
    return [
        {**col, "cards": [c for c in col["cards"] if _matches(c, state, today)]}
        for col in columns
    ]


def count_cards(columns):
    return sum(len(col["cards"]) for col in columns)


def search_cards(columns, query):
    """Title/description matches across the board, with their column title."""
    query = (query or "").strip().lower()
    if not query:
        return []

    results = []
    for col in columns:
        for card in col["cards"]:
            if query in (card.get("title") or "").lower() or query in (
                card.get("description") or ""
            ).lower():
                results.append({"card": card, "column_title": col["title"]})
    return results


# ─── Deadline tracker ────────────────────────────────────────────

def categorize_column(title):
    lowered = (title or "").lower()
    if any(word in lowered for word in _DONE_WORDS):
        return "done"
    if any(word in lowered for word in _IN_PROGRESS_WORDS):
        return "inprogress"
    return "todo"


def deadline_groups(columns, today=None):
    """Cards with a due date, grouped by lane kind and sorted most urgent first.

    Returns:
        dict: {"todo": [...], "inprogress": [...], "done": [...],
               "overdue_count": int, "today_count": int}
        Overdue/today counts cover the todo and in-progress lanes only.
    """
    today = today or date.today()
    groups = {tab: [] for tab in DEADLINE_TABS}

    for col in columns:
        tab = categorize_column(col["title"])
        for card in col["cards"]:
            day = due_day(card)
            if day is None:
                continue
            days_remaining = (day - today).days
            groups[tab].append({
                "card": card,
                "column_title": col["title"],
                "days_remaining": days_remaining,
                "is_overdue": days_remaining < 0,
                "is_today": days_remaining == 0,
            })

    for items in groups.values():
        items.sort(key=lambda item: item["days_remaining"])

    open_items = groups["todo"] + groups["inprogress"]
    groups["overdue_count"] = sum(1 for item in open_items if item["is_overdue"])
    groups["today_count"] = sum(1 for item in open_items if item["is_today"])
    return groups


def format_days_remaining(days, is_overdue=None, is_today=None):
    if is_overdue is None:
        is_overdue = days < 0
    if is_today is None:
        is_today = days == 0

    if is_overdue:
        n = abs(days)
        return f"{n} day{'s' if n != 1 else ''} overdue"
    if is_today:
        return "Today!"
    if days == 1:
        return "Tomorrow"
    return f"{days} days left"
