"""
Email service for Taskboard.

Sends the transactional mail the app needs when Supabase Auth is not
handling it: local magic links and organization invites. Each message
carries the rendered HTML plus a plain-text part derived from it.

Usage:
    from taskboard.services.email_service import send_email

    send_email(
        to="user@example.com",
        subject="Your sign-in link",
        template="emails/magic_link.html",
        context={"link": "..."},
    )
"""

import logging
import re
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import bleach
from flask import current_app, render_template

logger = logging.getLogger(__name__)

_BLANK_LINES = re.compile(r"\n\s*\n+")


def html_to_text(html):
    """Strip markup for the text/plain alternative, keeping link targets."""
    html = re.sub(r'<a [^>]*href="([^"]+)"[^>]*>(.*?)</a>', r"\2: \1", html, flags=re.S)
    text = bleach.clean(html, tags=[], strip=True)
    return _BLANK_LINES.sub("\n\n", text).strip()


def build_message(app, to, subject, html_body, reply_to=None):
    from_name = app.config.get("MAIL_FROM_NAME", "Taskboard")
    from_email = app.config.get("MAIL_FROM_ADDRESS") or app.config.get("MAIL_USERNAME") or ""

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)
    if reply_to:
        msg["Reply-To"] = reply_to

    # Last part is the preferred one
    msg.attach(MIMEText(html_to_text(html_body), "plain"))
    msg.attach(MIMEText(html_body, "html"))
    return msg


def _deliver(app, msg):
    """SMTP delivery; runs on a background thread."""
    with app.app_context():
        username = app.config.get("MAIL_USERNAME")
        password = app.config.get("MAIL_PASSWORD")
        if not username or not password:
            logger.warning(f"SMTP not configured; dropping email to {msg['To']}")
            return

        host = app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
        port = app.config.get("MAIL_SMTP_PORT", 587)
        try:
            with smtplib.SMTP(host, port, timeout=30) as server:
                server.starttls()
                server.login(username, password)
                server.send_message(msg)
            logger.info(f"Email sent to {msg['To']}: {msg['Subject']}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {msg['To']}: {e}")


def send_email(to, subject, template, context=None, reply_to=None):
    """Render `template` with `context` and send it without blocking the request.

    Returns the started thread so callers (and tests) can join it.
    """
    app = current_app._get_current_object()
    html_body = render_template(template, **(context or {}))
    msg = build_message(app, to, subject, html_body, reply_to)

    thread = threading.Thread(target=_deliver, args=(app, msg), daemon=True)
    thread.start()
    return thread
