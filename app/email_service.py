# app/email_service.py
import logging
import os
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Iterable

import requests

from app.email_templates import money, render_order_confirmation_html

logger = logging.getLogger(__name__)


def _get_env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name, default)
    if v in ("", None):
        return default
    return v


def _send_email(
    to_email: str,
    subject: str,
    text_body: str,
    html_body: str | None = None,
) -> None:
    """
    Provider selected via env:
    - EMAIL_PROVIDER=resend  (HTTP API, production)
    - EMAIL_PROVIDER=smtp    (fallback)
    Does nothing unless EMAIL_ENABLED == "1".
    """
    enabled = _get_env("EMAIL_ENABLED", "0")
    if enabled != "1":
        return

    provider = (_get_env("EMAIL_PROVIDER", "smtp") or "smtp").lower().strip()

    # ------------------------
    # RESEND (HTTP API)
    # ------------------------
    if provider == "resend":
        api_key = _get_env("RESEND_API_KEY")
        from_email = _get_env("FROM_EMAIL") or _get_env("SMTP_FROM")
        reply_to = _get_env("REPLY_TO_EMAIL") or _get_env("SMTP_REPLY_TO")

        if not api_key or not from_email:
            raise RuntimeError("RESEND_API_KEY / FROM_EMAIL missing from the environment.")

        payload: dict = {
            "from": from_email,
            "to": [to_email],
            "subject": subject,
            "text": text_body,
        }
        if html_body:
            payload["html"] = html_body
        if reply_to:
            payload["reply_to"] = reply_to

        r = requests.post(
            "https://api.resend.com/emails",
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=15,
        )

        if r.status_code >= 300:
            raise RuntimeError(f"Resend send failed: {r.status_code} {r.text}")

        return

    # ------------------------
    # SMTP (fallback)
    # ------------------------
    host = _get_env("SMTP_HOST")
    port = int(_get_env("SMTP_PORT", "587") or "587")
    user = _get_env("SMTP_USER")
    password = _get_env("SMTP_PASS")
    from_email = _get_env("SMTP_FROM", user)
    use_tls = _get_env("SMTP_TLS", "1") == "1"

    if not host or not from_email:
        raise RuntimeError("SMTP_HOST/SMTP_FROM missing from the environment.")

    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject

    msg.set_content(text_body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(host, port, timeout=20) as server:
        server.ehlo()
        if use_tls:
            server.starttls()
            server.ehlo()
        if user and password:
            server.login(user, password)
        server.send_message(msg)


def send_order_confirmation_email(
    *,
    to_email: str,
    customer_name: str,
    order_id: int,
    total_amount: int,
    lines: Iterable[tuple[str, int, int]],
) -> None:
    lines = list(lines)
    subject = f"Order #{order_id} confirmed"

    text_body = "\n".join(
        [
            f"Hello {customer_name},",
            "",
            "Thank you for your order.",
            "",
            f"Order ID: {order_id}",
            *[f"- {title} x{qty}: {money(price * qty)}" for title, qty, price in lines],
            f"Total: {money(total_amount)}",
            "",
            "If you have any questions, simply reply to this email.",
        ]
    )
    html_body = render_order_confirmation_html(
        order_id=order_id,
        customer_name=customer_name,
        total_amount=total_amount,
        lines=lines,
    )
    _send_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)


def send_withdrawal_status_email(
    *,
    to_email: str,
    withdrawal_id: int,
    amount: int,
    status: str,
    note: str | None = None,
) -> None:
    subject = f"Withdrawal #{withdrawal_id} {status}"

    lines = [
        "Hello,",
        "",
        f"Your withdrawal request #{withdrawal_id} of {money(amount)} has been {status}.",
    ]
    if note:
        lines += ["", f"Note: {note}"]

    html_body = f"""
    <div style="font-family:Arial,Helvetica,sans-serif;font-size:14px;line-height:1.6;color:#111;">
      <p>Hello,</p>
      <p>Your withdrawal request <b>#{withdrawal_id}</b> of <b>{money(amount)}</b>
      has been <b>{escape(status)}</b>.</p>
      {f"<p>Note: {escape(note)}</p>" if note else ""}
    </div>
    """.strip()

    _send_email(to_email=to_email, subject=subject, text_body="\n".join(lines), html_body=html_body)


def safe_send(fn, **kwargs) -> None:
    """
    Notifications never fail the request: log the attempt, log the exception.
    """
    try:
        logger.info("EMAIL: attempting %s | to=%s", fn.__name__, kwargs.get("to_email"))
        fn(**kwargs)
        logger.info("EMAIL: %s DONE | to=%s", fn.__name__, kwargs.get("to_email"))
    except Exception:
        logger.exception("EMAIL: %s FAILED | to=%s", fn.__name__, kwargs.get("to_email"))
