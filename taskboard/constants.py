"""UI-facing constants shared by services, templates and the JS layer."""

PRIORITY_CONFIG = {
    "low": {"label": "Low", "color": "#22c55e", "icon": "↓"},
    "medium": {"label": "Medium", "color": "#3b82f6", "icon": "→"},
    "high": {"label": "High", "color": "#f59e0b", "icon": "↑"},
    "critical": {"label": "Critical", "color": "#ef4444", "icon": "🔥"},
}

DEFAULT_LABEL_COLORS = [
    "#ef4444",  # red
    "#f59e0b",  # amber
    "#22c55e",  # green
    "#3b82f6",  # blue
    "#8b5cf6",  # purple
    "#ec4899",  # pink
    "#14b8a6",  # teal
    "#6366f1",  # indigo
]

# Columns created for a board made without a template
DEFAULT_COLUMNS = ["To Do", "In Progress", "Done"]

# Rows inserted by `flask seed-templates`
DEFAULT_BOARD_TEMPLATES = [
    {
        "name": "Basic Kanban",
        "description": "Three lanes, no limits.",
        "is_default": True,
        "columns_config": [
            {"title": "To Do", "wip_limit": None},
            {"title": "In Progress", "wip_limit": None},
            {"title": "Done", "wip_limit": None},
        ],
    },
    {
        "name": "Scrum Sprint",
        "description": "Sprint flow with a capped review lane.",
        "is_default": False,
        "columns_config": [
            {"title": "Backlog", "wip_limit": None},
            {"title": "Sprint", "wip_limit": None},
            {"title": "In Progress", "wip_limit": 3},
            {"title": "Review", "wip_limit": 2},
            {"title": "Done", "wip_limit": None},
        ],
    },
    {
        "name": "Bug Tracking",
        "description": "Triage, fix, verify.",
        "is_default": False,
        "columns_config": [
            {"title": "Reported", "wip_limit": None},
            {"title": "Triaged", "wip_limit": None},
            {"title": "Fixing", "wip_limit": 4},
            {"title": "Verifying", "wip_limit": None},
            {"title": "Done", "wip_limit": None},
        ],
    },
]

DESCRIPTION_TEMPLATES = [
    {
        "id": "bug",
        "label": "Bug Report",
        "content": (
            "### 🐛 Bug\n"
            "Short summary of the problem.\n\n"
            "### 👣 Steps\n"
            "1. Go to...\n"
            "2. Click...\n"
            "3. See the error...\n\n"
            "### 🤔 Expected behavior\n"
            "What should have happened?\n\n"
            "### 📸 Screenshots\n"
            "(if any)"
        ),
    },
    {
        "id": "feature",
        "label": "Feature Request",
        "content": (
            "### 🚀 Feature\n"
            "What should be built?\n\n"
            "### 🎯 Goal\n"
            "Which problem does it solve?\n\n"
            "### ✅ Acceptance criteria\n"
            "- [ ] Criterion 1\n"
            "- [ ] Criterion 2"
        ),
    },
    {
        "id": "task",
        "label": "General Task",
        "content": (
            "### 📋 Details\n"
            "What needs to be done.\n\n"
            "### 🔗 Resources\n"
            "- Link 1\n"
            "- Link 2"
        ),
    },
]

# Rendered in the help dialog; bound in static/js/app.js
KEYBOARD_SHORTCUTS = [
    {"combo": ["Ctrl", "B"], "description": "Create a new board"},
    {"combo": ["Ctrl", "N"], "description": "Add a new card"},
    {"combo": ["Ctrl", "K"], "description": "Search cards"},
    {"combo": ["/"], "description": "Search cards"},
    {"combo": ["Ctrl", "D"], "description": "Toggle theme"},
    {"combo": ["Esc"], "description": "Close"},
]

THEMES = ["dark", "light"]
