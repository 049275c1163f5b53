"""Org context middleware — resolves the current organization per request.

Runs before every request from a logged-in user.
Sets g.organizations (orgs the user can switch between) and g.current_org.

The choice lives in session["current_org_id"]; an id that no longer
belongs to the user falls back to their first organization, and an
explicit None selects the personal context.
"""

from flask import g, request, session
from flask_login import current_user

from taskboard.services.org_service import list_organizations

ORG_SESSION_KEY = "current_org_id"


def resolve_org_context():
    """Before-request hook. Skips static files and anonymous requests."""
    g.organizations = []
    g.current_org = None

    if request.path.startswith("/static/"):
        return
    if not current_user.is_authenticated:
        return

    orgs = list_organizations(current_user)
    g.organizations = orgs
    if not orgs:
        session.pop(ORG_SESSION_KEY, None)
        return

    # An explicit None means the user switched to their personal boards
    if ORG_SESSION_KEY in session and session[ORG_SESSION_KEY] is None:
        return

    selected_id = session.get(ORG_SESSION_KEY)
    current = next((o for o in orgs if o.id == selected_id), None)
    if current is None:
        current = orgs[0]
        session[ORG_SESSION_KEY] = current.id

    g.current_org = current


def switch_org(org_id):
    """Select an organization for this session.

    Returns the org, or None when the user does not belong to it.
    """
    if org_id in (None, "", "personal"):
        session[ORG_SESSION_KEY] = None
        return None

    org = next((o for o in list_organizations(current_user) if o.id == org_id), None)
    if org is not None:
        session[ORG_SESSION_KEY] = org.id
    return org


def init_org_context(app):
    """Register the org resolver as a before_request hook."""
    app.before_request(resolve_org_context)
