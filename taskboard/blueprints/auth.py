"""Auth blueprint — login, registration, magic links, logout.

Route Map:
  GET/POST /login              — Email + password login
  GET/POST /register           — Create an account
  POST     /login/magic-link   — Email a one-click sign-in link
  GET      /auth/callback      — Redeem a magic link (?token= / ?token_hash= / #access_token=)
  POST     /auth/session       — Adopt Supabase fragment tokens from the callback page
  GET      /logout             — Sign out
"""

from flask import (
    Blueprint,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user

from taskboard.extensions import db, limiter
from taskboard.services import auth_service
from taskboard.services.auth_service import AuthError

auth_bp = Blueprint("auth", __name__)


def _safe_next(next_url):
    """Only allow relative redirects (prevent open redirect)."""
    if not next_url or not next_url.startswith("/") or next_url.startswith("//"):
        return url_for("dashboard.dashboard")
    return next_url


# ──────────────────────────────────────────────
# GET/POST /login?next=/board/<id>
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("15 per minute", methods=["POST"])
def login():
    """Email + password login.

    After login, redirects to the `next` query param or the dashboard.
    """
    if current_user.is_authenticated:
        return redirect(_safe_next(request.args.get("next")))

    if request.method == "POST":
        email = request.form.get("email", "").lower().strip()
        password = request.form.get("password", "")
        remember = bool(request.form.get("remember"))
        next_url = request.form.get("next") or request.args.get("next", "")

        try:
            profile, auth_session = auth_service.sign_in_with_password(email, password)
        except AuthError as e:
            db.session.rollback()
            flash(str(e), "error")
            return render_template("auth/login.html", email=email, next_url=next_url)

        db.session.commit()
        auth_service.start_session(profile, auth_session, remember=remember)

        flash("Logged in successfully.", "success")
        return redirect(_safe_next(next_url))

    return render_template("auth/login.html", next_url=request.args.get("next", ""))


# ──────────────────────────────────────────────
# GET/POST /register
# ──────────────────────────────────────────────

@auth_bp.route("/register", methods=["GET", "POST"])
@limiter.limit("10 per minute", methods=["POST"])
def register():
    """Open registration.

    POST: create the account; log in straight away unless the auth
    provider wants the email confirmed first.
    """
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.dashboard"))

    if request.method == "POST":
        email = request.form.get("email", "").lower().strip()
        password = request.form.get("password", "")
        confirm = request.form.get("confirm_password", "")
        full_name = request.form.get("full_name", "").strip()

        if password != confirm:
            flash("Passwords do not match.", "error")
            return render_template("auth/register.html", email=email, full_name=full_name)

        try:
            profile, auth_session = auth_service.sign_up(email, password, full_name)
        except AuthError as e:
            db.session.rollback()
            flash(str(e), "error")
            return render_template("auth/register.html", email=email, full_name=full_name)

        db.session.commit()

        if auth_service.uses_supabase() and auth_session is None:
            flash("Check your inbox to confirm your email, then log in.", "info")
            return redirect(url_for("auth.login"))

        auth_service.start_session(profile, auth_session)
        flash("Welcome! Your account has been created.", "success")
        return redirect(url_for("onboarding.onboarding"))

    return render_template("auth/register.html")


# ──────────────────────────────────────────────
# POST /login/magic-link
# ──────────────────────────────────────────────

@auth_bp.route("/login/magic-link", methods=["POST"])
@limiter.limit("5 per minute")
def magic_link():
    """Send a passwordless sign-in link."""
    email = request.form.get("email", "").lower().strip()
    callback = url_for("auth.callback", _external=True)

    try:
        auth_service.send_magic_link(email, callback)
    except AuthError as e:
        db.session.rollback()
        flash(str(e), "error")
        return render_template("auth/login.html", email=email, next_url="")

    db.session.commit()
    flash("If that address can sign in, a link is on its way. Check your inbox.", "success")
    return redirect(url_for("auth.login"))


# ──────────────────────────────────────────────
# GET /auth/callback?token=<magic_link_token>
# GET /auth/callback?token_hash=<hash>&type=email
# GET /auth/callback#access_token=...   (Supabase default email)
# ──────────────────────────────────────────────

@auth_bp.route("/auth/callback")
@limiter.limit("20 per minute")
def callback():
    """Landing URL of the magic-link email."""
    token = request.args.get("token") or request.args.get("token_hash")

    # Supabase redirected with the session in the fragment; only the browser sees it
    if not token and auth_service.uses_supabase() and not request.args.get("error"):
        return render_template("auth/callback.html")

    try:
        profile, auth_session = auth_service.verify_magic_link(
            token, request.args.get("type", "email")
        )
    except AuthError as e:
        db.session.rollback()
        flash(request.args.get("error_description") or str(e), "error")
        return redirect(url_for("auth.login"))

    return _finish_link_sign_in(profile, auth_session)


@auth_bp.route("/auth/session", methods=["POST"])
@limiter.limit("20 per minute")
def adopt_session():
    """Receives the fragment tokens posted by auth/callback.html."""
    try:
        profile, auth_session = auth_service.sign_in_with_tokens(
            request.form.get("access_token"), request.form.get("refresh_token")
        )
    except AuthError as e:
        db.session.rollback()
        flash(str(e), "error")
        return redirect(url_for("auth.login"))

    return _finish_link_sign_in(profile, auth_session)


def _finish_link_sign_in(profile, auth_session):
    db.session.commit()
    auth_service.start_session(profile, auth_session)

    if not profile.full_name:
        return redirect(url_for("onboarding.profile_setup"))
    return redirect(url_for("dashboard.dashboard"))


# ──────────────────────────────────────────────
# GET /logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout")
def logout():
    """Sign out and redirect to the login page."""
    auth_service.sign_out()
    flash("You have been logged out.", "info")
    return redirect(url_for("auth.login"))
