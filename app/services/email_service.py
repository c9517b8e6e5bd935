# app/services/email_service.py
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
import logging
import smtplib

from app.core.config import settings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 5

PIN_EMAIL_TEMPLATE = """
<html>
  <body style="font-family: Arial, sans-serif; margin:0; padding:0;">
    <table width="100%" bgcolor="#f9f9f9" cellpadding="0" cellspacing="0" style="padding:20px 0;">
      <tr>
        <td align="center">
          <table width="600" cellpadding="0" cellspacing="0" bgcolor="#ffffff" style="border-radius:8px; overflow:hidden;">
            <tr bgcolor="#1f6f43">
              <td style="padding:20px; text-align:center;">
                <h1 style="color:white; margin:0;">{sender_name}</h1>
              </td>
            </tr>
            <tr>
              <td style="padding:30px; text-align:center;">
                <h2 style="color:#333;">Confirm your account</h2>
                <p style="color:#555;">Enter this PIN to finish your registration:</p>
                <p style="font-size:32px; font-weight:bold; color:#1f6f43; letter-spacing:5px;">{pin}</p>
                <p style="color:#777;">This PIN expires in {expiry_minutes} minutes.</p>
                <p style="color:#999; font-size:12px;">If you didn't create an account, please ignore this email.</p>
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>
"""


def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """
    Send an HTML email over SMTP.

    Returns False (and logs) instead of raising when SMTP is not configured
    or delivery fails, so callers can decide whether a lost email matters.
    """
    if not settings.SMTP_HOST or not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        logger.warning(f"SMTP not configured; skipping email to {to_email}")
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.SENDER_NAME, settings.FROM_EMAIL or settings.SMTP_USER))
    msg["To"] = to_email
    if settings.REPLY_EMAIL:
        msg["Reply-To"] = settings.REPLY_EMAIL

    msg.attach(MIMEText("Please view this email in an HTML-compatible email client.", "plain"))
    msg.attach(MIMEText(html_body, "html"))

    try:
        use_ssl = settings.SMTP_PORT == 465
        smtp_class = smtplib.SMTP_SSL if use_ssl else smtplib.SMTP
        with smtp_class(settings.SMTP_HOST, settings.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as server:
            if not use_ssl:
                server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(msg["From"], [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False

    logger.info(f"Email sent successfully to: {to_email}")
    return True


def send_pin_email(email: str, pin: str, expiry_minutes: int) -> bool:
    """Email a registration PIN."""
    html_content = PIN_EMAIL_TEMPLATE.format(
        sender_name=settings.SENDER_NAME, pin=pin, expiry_minutes=expiry_minutes
    )
    subject = f"Your {settings.SENDER_NAME} verification PIN"

    email_sent = send_email(email, subject, html_content)

    if not email_sent and settings.DEBUG:
        logger.info(f"PIN for {email}: {pin} (email not delivered)")

    return email_sent
