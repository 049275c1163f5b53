"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
Limiter storage comes from RATELIMIT_STORAGE_URI (memory:// by default).
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
limiter = Limiter(key_func=get_remote_address, default_limits=[])  # per-route limits only

login_manager.login_view = "auth.login"
login_manager.login_message = "Log in to see your boards."
login_manager.login_message_category = "info"


@login_manager.user_loader
def load_user(user_id):
    """Session cookie → Profile. Deactivated profiles are treated as logged out."""
    from taskboard.models.profile import Profile

    profile = db.session.get(Profile, user_id)
    if profile is None or not profile.is_active:
        return None
    return profile
