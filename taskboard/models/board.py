"""Board models.

- Board: a named workspace of ordered columns, personal or org-owned.
- BoardColumn: an ordered lane of cards, optionally capped by a WIP limit.
- Label: a colored tag scoped to one board.
- CardLabel: card <-> label join table.
- BoardTemplate: predefined column layouts offered when creating a board.

Ordering and cascade rules live in the schema (FK ondelete + ORM cascade),
not in service code.
"""

import uuid

from taskboard.extensions import db


class Board(db.Model):
    __tablename__ = "boards"

    TYPES = ["personal", "assigned"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title = db.Column(db.String(255), nullable=False)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    org_id = db.Column(
        db.String(36),
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
    )
    assigned_to = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    board_type = db.Column(
        db.String(20), nullable=False, default="personal"
    )  # personal | assigned
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    owner = db.relationship(
        "Profile", foreign_keys=[owner_id], back_populates="owned_boards"
    )
    organization = db.relationship("Organization", back_populates="boards")
    columns = db.relationship(
        "BoardColumn",
        back_populates="board",
        cascade="all, delete-orphan",
        order_by="BoardColumn.position",
    )
    labels = db.relationship(
        "Label", back_populates="board", cascade="all, delete-orphan"
    )
    activities = db.relationship(
        "Activity",
        back_populates="board",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Board {self.title}>"


class BoardColumn(db.Model):
    __tablename__ = "columns"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    wip_limit = db.Column(db.Integer, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    board = db.relationship("Board", back_populates="columns")
    cards = db.relationship(
        "Card",
        back_populates="column",
        cascade="all, delete-orphan",
        order_by="Card.position",
    )

    def __repr__(self):
        return f"<BoardColumn {self.title}>"


class Label(db.Model):
    __tablename__ = "labels"

    DEFAULT_COLOR = "#6366f1"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_COLOR)

    board = db.relationship("Board", back_populates="labels")
    card_labels = db.relationship(
        "CardLabel", back_populates="label", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Label {self.text}>"


class CardLabel(db.Model):
    __tablename__ = "card_labels"

    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        primary_key=True,
    )
    label_id = db.Column(
        db.String(36),
        db.ForeignKey("labels.id", ondelete="CASCADE"),
        primary_key=True,
    )

    card = db.relationship("Card", back_populates="card_labels")
    label = db.relationship("Label", back_populates="card_labels")

    def __repr__(self):
        return f"<CardLabel card={self.card_id} label={self.label_id}>"


class BoardTemplate(db.Model):
    __tablename__ = "board_templates"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # [{"title": "To Do", "wip_limit": null}, ...]
    columns_config = db.Column(db.JSON, nullable=False, default=list)
    is_default = db.Column(db.Boolean, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<BoardTemplate {self.name}>"
