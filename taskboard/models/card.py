"""Card models.

- Card: a task unit inside a column.
- Subtask: checklist item on a card (drives the done-column automation).
- Attachment: metadata for a file kept in object storage.
- Comment: free-text note on a card.
- Activity: trail entry for a board, optionally tied to a card.
"""

import uuid

from taskboard.extensions import db


class Card(db.Model):
    __tablename__ = "cards"

    # -- Valid priorities, lowest first --
    PRIORITIES = ["low", "medium", "high", "critical"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    column_id = db.Column(
        db.String(36),
        db.ForeignKey("columns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    priority = db.Column(
        db.String(20), nullable=False, default="medium"
    )  # low | medium | high | critical
    assigned_to = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    column = db.relationship("BoardColumn", back_populates="cards")
    assignee = db.relationship("Profile", foreign_keys=[assigned_to])
    card_labels = db.relationship(
        "CardLabel", back_populates="card", cascade="all, delete-orphan"
    )
    subtasks = db.relationship(
        "Subtask",
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="Subtask.position",
    )
    attachments = db.relationship(
        "Attachment", back_populates="card", cascade="all, delete-orphan"
    )
    comments = db.relationship(
        "Comment", back_populates="card", cascade="all, delete-orphan"
    )
    # ON DELETE SET NULL keeps the board's trail when a card goes away
    activities = db.relationship(
        "Activity", back_populates="card", passive_deletes=True
    )

    def __repr__(self):
        return f"<Card {self.title[:40]}>"


class Subtask(db.Model):
    __tablename__ = "subtasks"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(500), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    card = db.relationship("Card", back_populates="subtasks")

    def __repr__(self):
        return f"<Subtask {self.title[:40]} done={self.is_completed}>"


class Attachment(db.Model):
    __tablename__ = "attachments"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(255), nullable=True)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    storage_path = db.Column(db.String(1024), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    card = db.relationship("Card", back_populates="attachments")

    def __repr__(self):
        return f"<Attachment {self.file_name}>"


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    card = db.relationship("Card", back_populates="comments")
    author = db.relationship("Profile", foreign_keys=[user_id])

    def __repr__(self):
        return f"<Comment card={self.card_id}>"


class Activity(db.Model):
    __tablename__ = "activities"

    # -- Action types written by board_service --
    ACTION_TYPES = [
        "create_column",
        "create_card",
        "move_card",
        "update_card",
        "delete_card",
        "assign_card",
        "add_comment",
        "upload_attachment",
        "delete_attachment",
        "add_subtask",
        "toggle_subtask",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    action_type = db.Column(db.String(50), nullable=False)
    details = db.Column(db.JSON, default=dict)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    board = db.relationship("Board", back_populates="activities")
    card = db.relationship("Card", back_populates="activities")
    actor = db.relationship("Profile", foreign_keys=[user_id])

    def __repr__(self):
        return f"<Activity {self.action_type}>"
