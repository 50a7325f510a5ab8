import smtplib
from email.message import EmailMessage
from typing import Iterable, Optional

from loguru import logger

from freshdock.core.config import settings


def send_email(recipients: Iterable[Optional[str]], subject: str, body: str) -> bool:
    """
    Best-effort notification email. Returns False instead of raising so a
    mail outage never fails the request that triggered it.
    """
    to = sorted({r.strip() for r in recipients if r and r.strip()})
    if not to:
        return False

    if not settings.smtp_host:
        logger.info(f"SMTP not configured; skipping email '{subject}' to {to}")
        return False

    message = EmailMessage()
    message["From"] = settings.mail_from
    message["To"] = ", ".join(to)
    message["Subject"] = subject
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if settings.smtp_username:
                smtp.login(settings.smtp_username, settings.smtp_password or "")
            smtp.send_message(message)
        logger.info(f"Email '{subject}' sent to {to}")
        return True
    except Exception:
        logger.exception(f"Email '{subject}' to {to} failed")
        return False


def notify_dispatch_submitted(
    receiver_email: Optional[str],
    grower_email: Optional[str],
    receiver_name: str,
    grower_name: str,
    display_id: str,
    delivery_advice_number: Optional[str],
    status_url: str,
):
    reference = delivery_advice_number or display_id
    send_email(
        [receiver_email],
        f"New delivery advice {reference} from {grower_name}",
        (
            f"{grower_name} has submitted dispatch {display_id} to {receiver_name}.\n\n"
            f"Track it here: {status_url}\n"
        ),
    )
    send_email(
        [grower_email],
        f"Dispatch {display_id} submitted to {receiver_name}",
        (
            f"Thanks {grower_name}, your delivery advice {reference} was received.\n\n"
            f"Live status: {status_url}\n"
        ),
    )


def notify_grower_invited(email: str, grower_name: Optional[str], sign_in_url: str):
    send_email(
        [email],
        "You're invited to FreshDock",
        (
            f"Hi {grower_name or 'there'},\n\n"
            "Your receiver has set up a FreshDock account for you so you can send "
            "delivery advice online.\n\n"
            f"Set your password and sign in: {sign_in_url}\n"
        ),
    )
