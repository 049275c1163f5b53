"""Shared test fixtures for the Taskboard test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off, no Supabase)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: owner + member profiles, an organization, a board with
  To Do / In Progress / Done columns, a label and one card
"""

import pytest
from werkzeug.security import generate_password_hash

from taskboard import create_app
from taskboard.extensions import db as _db
from taskboard.models.board import Board, BoardColumn, Label
from taskboard.models.card import Card
from taskboard.models.organization import Organization, OrganizationMember
from taskboard.models.profile import Profile

OWNER_EMAIL = "owner@taskboard.local"
OWNER_PASSWORD = "owner-pass-123"
MEMBER_EMAIL = "member@taskboard.local"
MEMBER_PASSWORD = "member-pass-123"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def seed_data(app, db_session):
    """Seed an org with an owner and a member, plus one board.

    Returns a dict with the created objects and their plain IDs.
    """
    owner = Profile(
        email=OWNER_EMAIL,
        full_name="Olivia Owner",
        password_hash=generate_password_hash(OWNER_PASSWORD),
    )
    member = Profile(
        email=MEMBER_EMAIL,
        full_name="Max Member",
        password_hash=generate_password_hash(MEMBER_PASSWORD),
    )
    _db.session.add_all([owner, member])
    _db.session.flush()

    # --- Organization ---
    org = Organization(name="Acme", slug="acme-1", owner_id=owner.id)
    _db.session.add(org)
    _db.session.flush()
    _db.session.add_all([
        OrganizationMember(org_id=org.id, user_id=owner.id, role="admin"),
        OrganizationMember(org_id=org.id, user_id=member.id, role="member"),
    ])

    # --- Board + columns ---
    board = Board(title="Launch", owner_id=owner.id, org_id=org.id)
    _db.session.add(board)
    _db.session.flush()

    todo = BoardColumn(board_id=board.id, title="To Do", position=0)
    doing = BoardColumn(board_id=board.id, title="In Progress", position=1)
    done = BoardColumn(board_id=board.id, title="Done", position=2)
    _db.session.add_all([todo, doing, done])
    _db.session.flush()

    # --- Label + card ---
    label = Label(board_id=board.id, text="Bug", color="#ef4444")
    card = Card(column_id=todo.id, title="Write docs", position=0)
    _db.session.add_all([label, card])
    _db.session.commit()

    return {
        "owner": owner,
        "owner_id": owner.id,
        "member": member,
        "member_id": member.id,
        "org": org,
        "org_id": org.id,
        "board": board,
        "board_id": board.id,
        "todo": todo,
        "doing": doing,
        "done": done,
        "label": label,
        "card": card,
        "card_id": card.id,
    }


def login(client, email=OWNER_EMAIL, password=OWNER_PASSWORD):
    """Log in through the real login form."""
    return client.post(
        "/login",
        data={"email": email, "password": password},
        follow_redirects=False,
    )


@pytest.fixture
def owner_client(client, seed_data):
    """Test client logged in as the seeded org owner."""
    login(client)
    return client


@pytest.fixture
def member_client(client, seed_data):
    """Test client logged in as the seeded org member."""
    login(client, MEMBER_EMAIL, MEMBER_PASSWORD)
    return client
