# Models package — import all models here so Alembic can discover them.

from taskboard.models.profile import Profile  # noqa: F401
from taskboard.models.organization import (  # noqa: F401
    Organization,
    OrganizationInvite,
    OrganizationMember,
)
from taskboard.models.magic_link import MagicLinkToken  # noqa: F401
from taskboard.models.board import (  # noqa: F401
    Board,
    BoardColumn,
    BoardTemplate,
    CardLabel,
    Label,
)
from taskboard.models.card import (  # noqa: F401
    Activity,
    Attachment,
    Card,
    Comment,
    Subtask,
)
