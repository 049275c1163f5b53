"""Auth service — Supabase Auth (prod) or local accounts (dev/test).

When SUPABASE_URL and SUPABASE_ANON_KEY are configured every operation goes
to the Supabase Auth REST API (GoTrue):

    POST /auth/v1/signup                     — sign up
    POST /auth/v1/token?grant_type=password  — password sign-in
    POST /auth/v1/otp                        — send magic link
    POST /auth/v1/verify                     — redeem magic link
    GET  /auth/v1/user                       — session retrieval
    PUT  /auth/v1/user                       — password change
    POST /auth/v1/logout                     — sign out

Otherwise passwords are hashed locally with werkzeug and magic links are
one-time tokens delivered through email_service.

The Supabase user id is the profile id, so boards and memberships line up
with the rows the BaaS owns. Functions flush but do NOT commit.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

import requests
from flask import current_app, session
from flask_login import login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from taskboard.extensions import db
from taskboard.models.magic_link import MagicLinkToken
from taskboard.models.profile import Profile
from taskboard.services.email_service import send_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

_ACCESS_TOKEN_KEY = "sb_access_token"
_REFRESH_TOKEN_KEY = "sb_refresh_token"


class AuthError(Exception):
    """Raised with a user-facing message when authentication fails."""


def _get_supabase_auth_config():
    """Return Supabase auth config if available, else None."""
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_ANON_KEY")
    if url and key:
        return {"url": url.rstrip("/"), "key": key}
    return None


def uses_supabase():
    return _get_supabase_auth_config() is not None


def _auth_request(method, path, json=None, params=None, access_token=None):
    """Call a GoTrue endpoint and return the decoded JSON body.

    Raises:
        AuthError: On transport failure or any 4xx/5xx response.
    """
    config = _get_supabase_auth_config()
    headers = {
        "apikey": config["key"],
        "Authorization": f"Bearer {access_token or config['key']}",
        "Content-Type": "application/json",
    }

    try:
        resp = requests.request(
            method,
            f"{config['url']}{path}",
            headers=headers,
            json=json,
            params=params,
            timeout=current_app.config.get("SUPABASE_TIMEOUT", 30),
        )
    except requests.RequestException as e:
        logger.error(f"Supabase auth request {method} {path} failed: {e}")
        raise AuthError("Authentication service is unavailable. Please try again.") from e

    if resp.status_code >= 400:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        message = (
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or "Authentication failed."
        )
        logger.warning(f"Supabase auth {method} {path} -> {resp.status_code}: {message}")
        raise AuthError(message)

    if not resp.content:
        return {}
    return resp.json()


def _session_from(payload):
    """Extract the token pair from a GoTrue response, if it carries one."""
    if not payload or not payload.get("access_token"):
        return None
    return {
        "access_token": payload["access_token"],
        "refresh_token": payload.get("refresh_token"),
        "expires_in": payload.get("expires_in"),
    }


def _upsert_profile(user, fallback_email=None, full_name=None):
    """Mirror a Supabase auth user into the profiles table."""
    user_id = user.get("id")
    if not user_id:
        raise AuthError("Authentication service returned no user.")

    email = (user.get("email") or fallback_email or "").lower().strip()
    metadata = user.get("user_metadata") or {}
    full_name = full_name or metadata.get("full_name")

    profile = db.session.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id, email=email, full_name=full_name)
        db.session.add(profile)
    else:
        if email:
            profile.email = email
        if full_name and not profile.full_name:
            profile.full_name = full_name
    db.session.flush()
    return profile


def _check_password_rules(password):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


# ──────────────────────────────────────────────
# Sign up / sign in
# ──────────────────────────────────────────────

def sign_up(email, password, full_name):
    """Create an account.

    Returns:
        (Profile, session|None). Session is None when Supabase requires
        email confirmation first, and always None for local accounts.

    Raises:
        AuthError: If the input is invalid or the email is taken.
    """
    email = (email or "").lower().strip()
    full_name = (full_name or "").strip()
    if not email:
        raise AuthError("Email is required.")
    if not full_name:
        raise AuthError("Full name is required.")
    _check_password_rules(password)

    if uses_supabase():
        payload = _auth_request(
            "POST",
            "/auth/v1/signup",
            json={
                "email": email,
                "password": password,
                "data": {"full_name": full_name},
            },
        )
        # Confirmation-pending signups return the bare user object
        user = payload.get("user") or payload
        profile = _upsert_profile(user, fallback_email=email, full_name=full_name)
        logger.info(f"Signed up via Supabase: {email}")
        return profile, _session_from(payload)

    if Profile.query.filter_by(email=email).first():
        raise AuthError("An account with this email already exists.")

    profile = Profile(
        email=email,
        full_name=full_name,
        password_hash=generate_password_hash(password),
    )
    db.session.add(profile)
    db.session.flush()
    logger.info(f"Signed up locally: {email}")
    return profile, None


def sign_in_with_password(email, password):
    """Password sign-in.

    Returns:
        (Profile, session|None)

    Raises:
        AuthError: On bad credentials or a deactivated account.
    """
    email = (email or "").lower().strip()
    if not email or not password:
        raise AuthError("Email and password are required.")

    if uses_supabase():
        payload = _auth_request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        profile = _upsert_profile(payload.get("user") or {}, fallback_email=email)
        auth_session = _session_from(payload)
    else:
        profile = Profile.query.filter_by(email=email).first()
        if (
            profile is None
            or not profile.password_hash
            or not check_password_hash(profile.password_hash, password)
        ):
            raise AuthError("Invalid email or password.")
        auth_session = None

    if not profile.is_active:
        raise AuthError("Your account has been deactivated.")

    return profile, auth_session


# ──────────────────────────────────────────────
# Magic links
# ──────────────────────────────────────────────

def send_magic_link(email, redirect_to):
    """Email a one-click sign-in link that lands on `redirect_to`.

    Raises:
        AuthError: If the email is missing or Supabase refuses.
    """
    email = (email or "").lower().strip()
    if not email:
        raise AuthError("Email is required.")

    if uses_supabase():
        _auth_request(
            "POST",
            "/auth/v1/otp",
            params={"redirect_to": redirect_to},
            json={"email": email, "create_user": True},
        )
        logger.info(f"Magic link requested via Supabase for {email}")
        return

    ttl = current_app.config.get("MAGIC_LINK_TTL_MINUTES", 60)
    token = secrets.token_urlsafe(32)
    db.session.add(MagicLinkToken(
        email=email,
        token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=ttl),
    ))
    db.session.flush()

    send_email(
        to=email,
        subject="Your Taskboard sign-in link",
        template="emails/magic_link.html",
        context={"link": f"{redirect_to}?token={token}", "ttl_minutes": ttl},
    )
    logger.info(f"Magic link emailed to {email}")


def verify_magic_link(token, otp_type="email"):
    """Redeem a magic-link token (a GoTrue token_hash when Supabase is on).

    Returns:
        (Profile, session|None). First-time emails get a fresh profile
        without a name, which sends them through profile setup.

    Raises:
        AuthError: If the token is unknown, used or expired.
    """
    if not token:
        raise AuthError("Missing sign-in token.")

    if uses_supabase():
        payload = _auth_request(
            "POST",
            "/auth/v1/verify",
            json={"type": otp_type or "email", "token_hash": token},
        )
        profile = _upsert_profile(payload.get("user") or {})
        return profile, _session_from(payload)

    link = MagicLinkToken.query.filter_by(token=token).first()
    if link is None or link.is_used or link.is_expired:
        raise AuthError("This sign-in link is invalid or has expired.")

    link.used_at = datetime.now(timezone.utc)

    profile = Profile.query.filter_by(email=link.email).first()
    if profile is None:
        profile = Profile(email=link.email)
        db.session.add(profile)
    db.session.flush()

    if not profile.is_active:
        raise AuthError("Your account has been deactivated.")

    return profile, None


def sign_in_with_tokens(access_token, refresh_token=None):
    """Adopt a session Supabase handed to the browser in the URL fragment.

    The default magic-link email goes through Supabase's /verify, which
    redirects to the callback with `#access_token=...&refresh_token=...`.
    The token is checked against /auth/v1/user before it is trusted.

    Raises:
        AuthError: If Supabase is not configured or rejects the token.
    """
    if not uses_supabase():
        raise AuthError("This sign-in link is invalid or has expired.")
    if not access_token:
        raise AuthError("Missing sign-in token.")

    user = get_user(access_token)
    profile = _upsert_profile(user or {})
    return profile, {"access_token": access_token, "refresh_token": refresh_token}


# ──────────────────────────────────────────────
# Session handling
# ──────────────────────────────────────────────

def start_session(profile, auth_session=None, remember=False):
    """Log the profile in and keep the BaaS tokens in the Flask session."""
    login_user(profile, remember=remember)
    if auth_session:
        session[_ACCESS_TOKEN_KEY] = auth_session["access_token"]
        session[_REFRESH_TOKEN_KEY] = auth_session.get("refresh_token")


def get_access_token():
    return session.get(_ACCESS_TOKEN_KEY)


def get_user(access_token):
    """Fetch the BaaS user behind an access token (None for local auth).

    Raises:
        AuthError: If the token is no longer valid.
    """
    if not uses_supabase() or not access_token:
        return None
    return _auth_request("GET", "/auth/v1/user", access_token=access_token)


def get_session():
    """Current auth session: the logged-in profile plus BaaS tokens."""
    from flask_login import current_user

    if not current_user.is_authenticated:
        return None
    return {
        "user": current_user,
        "access_token": session.get(_ACCESS_TOKEN_KEY),
        "refresh_token": session.get(_REFRESH_TOKEN_KEY),
    }


def sign_out():
    """Revoke the BaaS session (best-effort) and clear the Flask session."""
    access_token = session.get(_ACCESS_TOKEN_KEY)
    if uses_supabase() and access_token:
        try:
            _auth_request("POST", "/auth/v1/logout", access_token=access_token)
        except AuthError as e:
            logger.warning(f"Supabase sign-out failed: {e}")

    logout_user()
    for key in (_ACCESS_TOKEN_KEY, _REFRESH_TOKEN_KEY, "current_org_id", "onboarding_skipped"):
        session.pop(key, None)


def update_password(profile, new_password, access_token=None):
    """Change the password of the signed-in profile.

    Raises:
        AuthError: If the password is too short or the session expired.
    """
    _check_password_rules(new_password)

    if uses_supabase():
        if not access_token:
            raise AuthError("Your session has expired. Please sign in again.")
        _auth_request(
            "PUT",
            "/auth/v1/user",
            json={"password": new_password},
            access_token=access_token,
        )
        return

    profile.password_hash = generate_password_hash(new_password)
    db.session.flush()
