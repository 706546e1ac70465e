"""
test_mailer.py - Tests for the result mail report
"""

import smtplib
from unittest.mock import MagicMock

import pytest

from manager import MailConfig
from pipeline import BatchOutcome
from utils.mailer import SMTP_HOST, SMTP_PORT, MailNotifier, build_html, build_subject, build_text
from work_item import Platform


@pytest.fixture
def mail_config():
    return MailConfig(user="bot@example.com", password="app-password", to="owner@example.com")


@pytest.fixture
def make_batch(make_item, outcome):
    def _make(all_success=True, x_enabled=True, title="Morning in Kyoto"):
        item = make_item()
        item.title = title
        outcomes = [
            outcome(Platform.YOUTUBE),
            outcome(Platform.TIKTOK, skipped=True),
            outcome(Platform.INSTAGRAM, success=all_success, error=None if all_success else "<timeout>"),
            outcome(Platform.X, success=x_enabled, skipped=not x_enabled),
        ]
        return BatchOutcome(item=item, outcomes=outcomes, all_success=all_success, x_enabled=x_enabled)
    return _make


class TestReportContent:

    def test_subject_on_success(self, make_batch):
        assert build_subject(make_batch()) == "✅ [SNS AutoPost] Morning in Kyoto"

    def test_subject_on_failure(self, make_batch):
        assert build_subject(make_batch(all_success=False)) == "⚠️ [SNS AutoPost Error] Morning in Kyoto"

    def test_html_has_badge_per_platform(self, make_batch):
        html = build_html(make_batch(all_success=False))

        assert html.count(">SUCCESS</span>") == 2
        assert html.count(">SKIPPED</span>") == 1
        assert html.count(">FAILED</span>") == 1

    def test_html_escapes_user_text(self, make_batch):
        html = build_html(make_batch(all_success=False, title="<script>alert(1)</script>"))

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "&lt;timeout&gt;" in html

    def test_x_disabled_note(self, make_batch):
        assert "API keys are not configured" in build_html(make_batch(x_enabled=False))
        assert "API keys are not configured" not in build_html(make_batch(x_enabled=True))

    def test_plain_text_lists_outcomes(self, make_batch):
        text = build_text(make_batch(all_success=False))
        assert "Instagram: FAILED (<timeout>)" in text
        assert "TikTok: SKIPPED" in text


class TestMailNotifier:

    def test_send_logs_in_and_sends(self, mail_config, make_batch):
        smtp = MagicMock()
        factory = MagicMock()
        factory.return_value.__enter__.return_value = smtp
        notifier = MailNotifier(mail_config, "SNS AutoPost", smtp_factory=factory)

        notifier.send(make_batch())

        factory.assert_called_once_with(SMTP_HOST, SMTP_PORT, timeout=30)
        smtp.login.assert_called_once_with("bot@example.com", "app-password")
        message = smtp.send_message.call_args[0][0]
        assert message['To'] == "owner@example.com"
        assert message['From'] == "SNS AutoPost <bot@example.com>"
        assert message['Subject'].startswith("✅")

    def test_send_failure_is_swallowed(self, mail_config, make_batch, caplog):
        factory = MagicMock(side_effect=smtplib.SMTPAuthenticationError(535, b"bad credentials"))
        notifier = MailNotifier(mail_config, smtp_factory=factory)

        notifier.send(make_batch())

        assert "failed to send report" in caplog.text
