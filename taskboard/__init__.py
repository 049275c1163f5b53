import os
import logging

import click
from flask import (
    Flask,
    g,
    has_request_context,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user
from werkzeug.security import generate_password_hash

from taskboard.config import config_by_name
from taskboard.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from taskboard import models  # noqa: F401

    # --- Org context middleware ---
    from taskboard.middleware.org_context import init_org_context
    init_org_context(app)

    # --- Realtime change feed ---
    from taskboard.services.realtime_service import init_realtime
    init_realtime(app)

    # --- Register blueprints ---
    from taskboard.blueprints.auth import auth_bp
    from taskboard.blueprints.dashboard import dashboard_bp
    from taskboard.blueprints.board import board_bp
    from taskboard.blueprints.api import api_bp
    from taskboard.blueprints.admin import admin_bp
    from taskboard.blueprints.onboarding import onboarding_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(board_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(onboarding_bp)

    # --- Root route ---
    @app.route("/")
    def index():
        """Root URL — landing page for visitors, dashboard for logged-in users."""
        if current_user.is_authenticated:
            return redirect(url_for("dashboard.dashboard"))
        return render_template("landing.html")

    # --- Local file serving (no Supabase Storage configured) ---
    if not (app.config.get("SUPABASE_URL") and app.config.get("SUPABASE_SERVICE_KEY")):
        from flask import send_from_directory
        from flask_login import login_required

        @app.route("/uploads/<path:filepath>")
        @login_required
        def serve_upload(filepath):
            """Serve attachments stored under instance/uploads."""
            upload_dir = os.path.join(app.instance_path, "uploads")
            return send_from_directory(upload_dir, filepath)

    # --- Template context ---
    @app.context_processor
    def inject_globals():
        from taskboard.constants import KEYBOARD_SHORTCUTS, PRIORITY_CONFIG, THEMES

        context = {
            "theme": THEMES[0],
            "keyboard_shortcuts": KEYBOARD_SHORTCUTS,
            "priority_config": PRIORITY_CONFIG,
            "current_org": None,
            "organizations": [],
        }
        # Emails rendered from the CLI or a worker thread have no request
        if has_request_context():
            context["theme"] = session.get("theme", THEMES[0])
            context["current_org"] = getattr(g, "current_org", None)
            context["organizations"] = getattr(g, "organizations", [])
        return context

    # --- Error handlers ---
    def _wants_json():
        return request.path.startswith("/api/")

    @app.errorhandler(403)
    def forbidden(e):
        if _wants_json():
            return {"error": "You do not have access to this resource."}, 403
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(e):
        if _wants_json():
            return {"error": "Not found."}, 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def server_error(e):
        if _wants_json():
            return {"error": "Something went wrong."}, 500
        return render_template("errors/500.html"), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Permissions Policy (restrict browser features)
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=()"
        )
        # Content Security Policy
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
            "img-src 'self' data: https://*.supabase.co; "
            "font-src 'self' https://fonts.gstatic.com; "
            "connect-src 'self' https://*.supabase.co; "
            "base-uri 'self'; "
            "form-action 'self'; "
            "frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Custom Jinja filters ---
    @app.template_filter("filesize")
    def filesize_filter(value):
        """Human-readable byte count: 512 B, 3.4 KB, 1.2 MB."""
        size = float(value or 0)
        for unit in ("B", "KB", "MB"):
            if size < 1024 or unit == "MB":
                return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
            size /= 1024

    @app.template_filter("day")
    def day_filter(value):
        """ISO timestamp → YYYY-MM-DD for date inputs and badges."""
        return (value or "")[:10]

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-templates")
    def seed_templates():
        """Insert the default board templates (idempotent by name).

        Usage:
            flask seed-templates
        """
        from taskboard.constants import DEFAULT_BOARD_TEMPLATES
        from taskboard.models.board import BoardTemplate

        created = 0
        for tpl in DEFAULT_BOARD_TEMPLATES:
            if BoardTemplate.query.filter_by(name=tpl["name"]).first():
                click.echo(f"Template already exists: {tpl['name']}")
                continue
            db.session.add(BoardTemplate(
                name=tpl["name"],
                description=tpl["description"],
                columns_config=tpl["columns_config"],
                is_default=tpl["is_default"],
            ))
            created += 1

        db.session.commit()
        click.echo(f"Created {created} template(s).")

    @app.cli.command("seed-demo")
    @click.option("--email", default="demo@taskboard.local", help="Demo user email")
    @click.option("--password", default="demo12345", help="Demo user password")
    def seed_demo(email, password):
        """Create a demo user, organization and board with a few cards.

        Usage:
            flask seed-demo
            flask seed-demo --email me@example.com --password s3cret123
        """
        from taskboard.models.profile import Profile
        from taskboard.services import board_service, org_service

        # --- 1. Demo user ---
        profile = Profile.query.filter_by(email=email).first()
        if profile:
            click.echo(f"Demo user already exists: {email}")
        else:
            profile = Profile(
                email=email,
                full_name="Demo User",
                password_hash=generate_password_hash(password),
            )
            db.session.add(profile)
            db.session.flush()
            click.echo(f"Created demo user: {email}")

        # --- 2. Organization ---
        org = org_service.create_organization("Demo Team", profile)
        click.echo(f"Created organization: {org.slug}")

        # --- 3. Board + cards ---
        board = board_service.create_board("Product Launch", profile, org_id=org.id)
        todo, doing, done = board.columns[:3]

        card = board_service.add_card(todo.id, "Write launch announcement", profile)
        board_service.update_card(card.id, {"priority": "high"}, profile)
        board_service.add_subtask(card.id, "Draft", profile)
        board_service.add_subtask(card.id, "Review", profile)

        board_service.add_card(doing.id, "Polish onboarding flow", profile)
        board_service.add_card(done.id, "Set up project", profile)

        label = board_service.create_label(board.id, "Marketing", "#ec4899")
        board_service.toggle_card_label(card.id, label.id)

        db.session.commit()

        click.echo("")
        click.echo("=" * 50)
        click.echo(f"  Login:  {email} / {password}")
        click.echo(f"  Board:  /board/{board.id}")
        click.echo("=" * 50)
