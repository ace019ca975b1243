"""Email delivery for scan-complete notifications."""

from __future__ import annotations

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config import get_settings

logger = logging.getLogger(__name__)


def _platform_rows(platform_statuses: dict[str, str]) -> str:
    rows = ""
    for platform, status in sorted(platform_statuses.items()):
        rows += (
            "<tr>"
            f'<td style="padding:8px;border:1px solid #ddd">{html.escape(platform)}</td>'
            f'<td style="padding:8px;border:1px solid #ddd">{html.escape(status)}</td>'
            "</tr>"
        )
    return rows


def _build_html_email(scan, platform_statuses: dict[str, str]) -> str:
    """HTML body: overall status, counters, one row per platform."""
    return (
        "<html><body>"
        f"<h2>Feedback Hunter scan {html.escape(str(scan.id))} &mdash; {html.escape(scan.status)}</h2>"
        "<p>"
        f"<strong>Collected:</strong> {scan.total_collected}<br>"
        f"<strong>Relevant:</strong> {scan.total_relevant}<br>"
        f"<strong>Classified:</strong> {scan.total_classified}"
        "</p>"
        '<table style="border-collapse:collapse">'
        "<tr>"
        '<th style="padding:8px;border:1px solid #ddd;text-align:left">Platform</th>'
        '<th style="padding:8px;border:1px solid #ddd;text-align:left">Status</th>'
        "</tr>"
        f"{_platform_rows(platform_statuses)}"
        "</table>"
        "</body></html>"
    )


def _build_text_email(scan, platform_statuses: dict[str, str]) -> str:
    lines = [
        f"Feedback Hunter scan {scan.id} - {scan.status}",
        "=" * 40,
        f"Collected:  {scan.total_collected}",
        f"Relevant:   {scan.total_relevant}",
        f"Classified: {scan.total_classified}",
        "",
    ]
    for platform, status in sorted(platform_statuses.items()):
        lines.append(f"  {platform}: {status}")
    return "\n".join(lines)


def send_scan_complete_email(
    scan,
    platform_statuses: dict[str, str],
    recipient: str,
    settings=None,
) -> bool:
    """Send the scan-complete summary.

    Returns True on success, False on any failure (never raises on SMTP errors).
    """
    if settings is None:
        settings = get_settings()

    if not recipient:
        logger.debug("email_send_skipped: no recipient configured")
        return False

    smtp_host = getattr(settings, "smtp_host", "")
    if not smtp_host:
        logger.warning("email_send_skipped: SMTP host not configured")
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"Feedback Hunter scan {scan.status}: {scan.total_classified} items classified"
    msg["From"] = getattr(settings, "smtp_from", "")
    msg["To"] = recipient
    msg.attach(MIMEText(_build_text_email(scan, platform_statuses), "plain"))
    msg.attach(MIMEText(_build_html_email(scan, platform_statuses), "html"))

    try:
        with smtplib.SMTP(smtp_host, getattr(settings, "smtp_port", 587)) as server:
            server.starttls()
            smtp_user = getattr(settings, "smtp_user", "")
            smtp_password = getattr(settings, "smtp_password", "")
            if smtp_user:
                server.login(smtp_user, smtp_password)
            server.sendmail(msg["From"], [recipient], msg.as_string())
        logger.info("email_sent: recipient=%s scan_id=%s", recipient, scan.id)
        return True
    except smtplib.SMTPAuthenticationError:
        logger.error("email_auth_failed: could not authenticate with SMTP server")
        return False
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("email_send_failed: %s", exc)
        return False
