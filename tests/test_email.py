"""Tests for email_service — message building and background delivery."""

from unittest.mock import patch

from flask import has_request_context

from taskboard.services import email_service


class TestBuildMessage:

    def test_headers_and_parts(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "MAIL_FROM_ADDRESS", "noreply@taskboard.local")
        msg = email_service.build_message(
            app, ["a@example.com", "b@example.com"], "Hi", "<p>Hello</p>", reply_to="r@example.com"
        )

        assert msg["From"] == "Taskboard <noreply@taskboard.local>"
        assert msg["To"] == "a@example.com, b@example.com"
        assert msg["Reply-To"] == "r@example.com"
        assert [p.get_content_type() for p in msg.get_payload()] == ["text/plain", "text/html"]

    def test_html_to_text_keeps_links(self):
        text = email_service.html_to_text(
            '<h2>Join</h2>\n\n\n<p><a href="https://x.test/accept">Accept</a></p>'
        )
        assert text == "Join\n\nAccept: https://x.test/accept"


class TestSendEmail:

    @patch("taskboard.services.email_service.smtplib.SMTP")
    def test_unconfigured_smtp_skips_delivery(self, mock_smtp, app):
        with app.app_context():
            thread = email_service.send_email(
                "user@example.com",
                "Your sign-in link",
                "emails/magic_link.html",
                {"link": "http://localhost/auth/callback?token=t", "ttl_minutes": 60},
            )
        thread.join(timeout=5)
        mock_smtp.assert_not_called()

    @patch("taskboard.services.email_service.smtplib.SMTP")
    def test_delivers_over_smtp(self, mock_smtp, app, monkeypatch):
        monkeypatch.setitem(app.config, "MAIL_USERNAME", "bot@taskboard.local")
        monkeypatch.setitem(app.config, "MAIL_PASSWORD", "app-password")

        with app.app_context():
            thread = email_service.send_email(
                "user@example.com",
                "Your sign-in link",
                "emails/magic_link.html",
                {"link": "http://localhost/auth/callback?token=t", "ttl_minutes": 60},
            )
        thread.join(timeout=5)

        server = mock_smtp.return_value.__enter__.return_value
        server.login.assert_called_once_with("bot@taskboard.local", "app-password")
        sent = server.send_message.call_args.args[0]
        assert sent["Subject"] == "Your sign-in link"

    @patch("taskboard.services.email_service._deliver")
    def test_renders_without_request_context(self, mock_deliver, app):
        """CLI commands and worker threads send mail with only an app context."""
        with app.app_context():
            assert not has_request_context()
            thread = email_service.send_email(
                "user@example.com",
                "You're invited",
                "emails/org_invite.html",
                {
                    "org_name": "Acme",
                    "inviter_name": "Olivia Owner",
                    "accept_url": "http://localhost/orgs/invite/accept?token=t",
                },
            )
        thread.join(timeout=5)

        sent = mock_deliver.call_args.args[1]
        html = sent.get_payload()[1].get_payload(decode=True).decode()
        assert "Acme" in html
