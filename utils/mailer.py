"""
mailer.py - Result Mail Notifier

Sends one HTML report per processed item through Gmail SMTP.
Best-effort: a failed send is logged and never affects the run.
"""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from html import escape

from manager import MailConfig
from utils.log import log_success

logger = logging.getLogger(__name__)

SMTP_HOST = "smtp.gmail.com"
SMTP_PORT = 465

BADGE_COLORS = {
    'SUCCESS': '#28a745',
    'SKIPPED': '#6c757d',
    'FAILED': '#dc3545',
}


def build_subject(batch) -> str:
    title = batch.item.title
    if batch.all_success:
        return f"✅ [SNS AutoPost] {title}"
    return f"⚠️ [SNS AutoPost Error] {title}"


def _badge(label: str) -> str:
    color = BADGE_COLORS[label]
    return (
        f'<span style="background-color: {color}; color: white; padding: 2px 8px; '
        f'border-radius: 4px; font-size: 12px;">{label}</span>'
    )


def build_html(batch) -> str:
    """Render the report body for one BatchOutcome."""
    item = batch.item
    overall = "✅ All posts succeeded" if batch.all_success else "⚠️ Some posts failed"
    overall_color = '#28a745' if batch.all_success else '#dc3545'

    rows = []
    for outcome in batch.outcomes:
        rows.append(
            "<tr>"
            f'<td style="padding: 8px 12px; border-bottom: 1px solid #eee;">{escape(outcome.platform.display_name)}</td>'
            f'<td style="padding: 8px 12px; border-bottom: 1px solid #eee;">{_badge(outcome.label)}</td>'
            f'<td style="padding: 8px 12px; border-bottom: 1px solid #eee; color: #666; font-size: 13px;">'
            f'{escape(outcome.error or "-")}</td>'
            "</tr>"
        )

    x_note = ""
    if not batch.x_enabled:
        x_note = (
            '<p style="margin: 12px 0 0; font-size: 12px; color: #999;">'
            "X (Twitter) was skipped because its API keys are not configured.</p>"
        )

    return f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
  <div style="background-color: {overall_color}; color: white; padding: 16px 20px; border-radius: 8px 8px 0 0;">
    <h2 style="margin: 0; font-size: 18px;">{overall}</h2>
    <p style="margin: 4px 0 0; font-size: 14px;">SNS AutoPost result report</p>
  </div>
  <div style="background-color: #f8f9fa; padding: 16px 20px; border: 1px solid #e9ecef; border-top: none;">
    <p style="margin: 0; font-size: 15px;">
      🎬 <strong>{escape(item.video_file_name)}</strong><br>
      📄 {escape(item.json_file_name)}
    </p>
    <p style="margin: 8px 0 0; font-size: 14px; color: #666;">Title: <strong>{escape(item.title)}</strong></p>
  </div>
  <div style="padding: 16px 20px; border: 1px solid #e9ecef; border-top: none; border-radius: 0 0 8px 8px;">
    <table style="width: 100%; border-collapse: collapse;">
      <thead>
        <tr style="background-color: #f1f3f5;">
          <th style="padding: 8px 12px; text-align: left;">Platform</th>
          <th style="padding: 8px 12px; text-align: left;">Status</th>
          <th style="padding: 8px 12px; text-align: left;">Detail</th>
        </tr>
      </thead>
      <tbody>
        {''.join(rows)}
      </tbody>
    </table>
    {x_note}
  </div>
</body>
</html>"""


def build_text(batch) -> str:
    """Plain-text alternative of the report."""
    lines = [build_subject(batch), "", f"Video: {batch.item.video_file_name}", ""]
    lines.extend(str(outcome) for outcome in batch.outcomes)
    return "\n".join(lines)


class MailNotifier:
    """Sends result reports through Gmail SMTP."""

    def __init__(self, config: MailConfig, sender_name: str = "SNS AutoPost", smtp_factory=smtplib.SMTP_SSL):
        self.config = config
        self.sender_name = sender_name
        self._smtp_factory = smtp_factory

    def build_message(self, batch) -> EmailMessage:
        message = EmailMessage()
        message['Subject'] = build_subject(batch)
        message['From'] = formataddr((self.sender_name, self.config.user))
        message['To'] = self.config.to
        message.set_content(build_text(batch))
        message.add_alternative(build_html(batch), subtype='html')
        return message

    def send(self, batch) -> None:
        """Send the report; failures are logged and swallowed."""
        try:
            logger.info("Mail: preparing report...")
            message = self.build_message(batch)
            with self._smtp_factory(SMTP_HOST, SMTP_PORT, timeout=30) as smtp:
                smtp.login(self.config.user, self.config.password)
                smtp.send_message(message)
            log_success(logger, "Mail: report sent to %s", self.config.to)
        except Exception:
            logger.exception("Mail: failed to send report")
