"""
Custom route decorators for access control.

- setup_required: logged in AND profile set up AND onboarding done (or skipped).
- org_admin_required: logged in AND admin of the current organization.
- api_login_required: JSON 401 instead of a redirect for anonymous API calls.
"""

from functools import wraps

from flask import abort, g, jsonify, redirect, session, url_for
from flask_login import current_user, login_required


def setup_required(f):
    """Require login, a full name, and a finished (or skipped) onboarding."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not current_user.full_name:
            return redirect(url_for("onboarding.profile_setup"))

        # Imported lazily to keep models out of import-time cycles
        from taskboard.services.org_service import needs_onboarding

        if not session.get("onboarding_skipped") and needs_onboarding(current_user):
            return redirect(url_for("onboarding.onboarding"))

        return f(*args, **kwargs)

    return decorated


def org_admin_required(f):
    """Require login + admin role in g.current_org (set by org middleware)."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        from taskboard.services.org_service import is_org_admin

        org = getattr(g, "current_org", None)
        if org is None or not is_org_admin(org, current_user):
            abort(403)
        return f(*args, **kwargs)

    return decorated


def api_login_required(f):
    """Like login_required, but answers with JSON for fetch() callers."""

    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"error": "Authentication required."}), 401
        return f(*args, **kwargs)

    return decorated
