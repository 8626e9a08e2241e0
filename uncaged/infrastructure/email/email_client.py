"""
Servicio simple de envío de correos (SMTP) para el flujo de reseteo de contraseña.
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from uncaged.core.config import Settings

_log = logging.getLogger("uncaged.mail")


class MailDeliveryError(Exception):
    """El transporte no pudo entregar el correo (SMTP caído, credenciales, etc.)."""


class MailSender(Protocol):
    def send(self, to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> None: ...


class SmtpMailSender:
    def __init__(self, settings: Settings) -> None:
        self._s = settings

    def send(self, to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> None:
        s = self._s
        if not s.smtp_configured:
            raise MailDeliveryError("SMTP no configurado. Define SMTP_HOST/SMTP_USER/SMTP_PASS en .env")

        msg = EmailMessage()
        msg["From"] = f"{s.smtp_from_name} <{s.smtp_from_email or s.smtp_user}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")

        try:
            # STARTTLS por defecto (587); SSL directo si smtp_use_tls=False (465)
            if s.smtp_use_tls:
                with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds) as server:
                    server.starttls()
                    server.login(s.smtp_user, s.smtp_pass)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds) as server:
                    server.login(s.smtp_user, s.smtp_pass)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(str(e)) from e
        _log.info("Correo enviado subject=%r", subject)


def send_reset_code_email(mailer: MailSender, to_email: str, code: str, expires_in_minutes: int) -> None:
    subject = "Forgot Password"
    text = (
        "You are receiving this email because a password reset was requested for your unCaged account.\n\n"
        f"Your password reset code is: {code}\n\n"
        f"This code will expire in {expires_in_minutes} minutes.\n"
        "If you did not request a password reset, you can safely ignore this email."
    )
    html = f"""
    <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background:#f7f7f8;padding:24px 0;font-family:system-ui,-apple-system,Segoe UI,Roboto,sans-serif;color:#111">
      <tr>
        <td align="center">
          <table role="presentation" width="560" cellpadding="0" cellspacing="0" style="background:#fff;border-radius:12px;border:1px solid #e6e6e7;padding:24px">
            <tr><td>
              <h2 style="margin:0 0 8px;font-size:20px;color:#111">Reset your unCaged password</h2>
              <p style="margin:0 0 16px;color:#444">Use this code to reset your password:</p>
              <div style="display:inline-block;font-size:28px;letter-spacing:4px;font-weight:700;background:#111;color:#fff;padding:12px 16px;border-radius:8px">{code}</div>
              <p style="margin:16px 0 0;color:#555">This code expires in <b>{expires_in_minutes} minutes</b>. If you did not request a password reset, you can safely ignore this email.</p>
            </td></tr>
          </table>
        </td>
      </tr>
    </table>
    """
    mailer.send(to_email, subject, text, html)
