import smtplib
from email.message import EmailMessage

from flask import current_app

NOT_CONFIGURED = "Email not configured"

TEMPLATES = {
    "booking_approved": (
        "Your booking is confirmed",
        "Hi {name},\n\n"
        "Your booking on {court} from {start} to {end} has been approved.\n"
        "Show this code at the front desk: {qr_code}\n",
    ),
    "booking_rejected": (
        "Your booking was not approved",
        "Hi {name},\n\n"
        "Your booking on {court} from {start} to {end} was rejected.\n"
        "Reason: {reason}\n",
    ),
    "booking_cancelled": (
        "Your booking was cancelled",
        "Hi {name},\n\n"
        "Your booking on {court} from {start} to {end} has been cancelled.\n",
    ),
    "waitlist_notified": (
        "A slot you waited for is available",
        "Hi {name},\n\n"
        "{court} from {start} to {end} is now available for you.\n"
        "Upload your proof of payment before {expires_at} to keep it.\n",
    ),
    "waitlist_cancelled": (
        "Waitlist update",
        "Hi {name},\n\n"
        "The slot on {court} from {start} to {end} has been confirmed for another player.\n"
        "Your waitlist entry was cancelled.\n",
    ),
}


def render(template: str, **context):
    subject, body = TEMPLATES[template]
    return subject, body.format(**context)


def send_email(to_email: str, subject: str, body: str):
    host = current_app.config.get("SMTP_HOST")
    port = current_app.config.get("SMTP_PORT", 587)
    username = current_app.config.get("SMTP_USERNAME")
    password = current_app.config.get("SMTP_PASSWORD")
    from_email = current_app.config.get("SMTP_FROM_EMAIL") or username
    use_tls = current_app.config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        return False, NOT_CONFIGURED

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        return False, str(exc)


def send_template(to_email: str, template: str, **context):
    subject, body = render(template, **context)
    return send_email(to_email, subject, body)
