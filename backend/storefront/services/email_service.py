"""
Email Service
=============
Transactional mail for the store, sent over SMTP with aiosmtplib:
- Welcome and password reset mails
- Order confirmation and status updates
- Warranty registration, expiry reminders and claim updates
- Admin alerts and periodic reports

Sending never raises into request handlers: failures are logged and
reported as False.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from typing import Optional, List, Dict, Tuple, Any
from datetime import datetime, date

from storefront.core.config import settings
from storefront.core.logging_config import logger


STATUS_MESSAGES = {
    "pending": "Your order has been received and is awaiting confirmation.",
    "confirmed": "Your order has been confirmed and is being prepared.",
    "shipped": "Your order is on its way!",
    "delivered": "Your order has been delivered. Your warranty is now registered.",
    "cancelled": "Your order has been cancelled.",
}

CLAIM_MESSAGES = {
    "pending": "Your claim is waiting for review.",
    "approved": "Good news! Your claim has been approved. Our team will contact you shortly.",
    "rejected": "Unfortunately your claim could not be approved.",
    "resolved": "Your claim has been resolved.",
}


class EmailService:
    """Async SMTP mailer"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL
        self.admin_email = settings.ADMIN_EMAIL or settings.SMTP_USER

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning(f"[Email] Email service not configured, skipping '{subject}' to {to_email}")
            return False
        if not to_email:
            logger.warning(f"[Email] No recipient for '{subject}', skipping")
            return False

        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True
            )

            logger.info(f"[Email/SMTP] Sent '{subject}' to {to_email}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send '{subject}' to {to_email}: {e}")
            return False

    def _layout(self, heading: str, body_html: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: #1e3a8a; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
                .content {{ background: #f9fafb; padding: 24px; border-radius: 0 0 10px 10px; }}
                .button {{ display: inline-block; background: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 8px; font-weight: 600; }}
                table {{ width: 100%; border-collapse: collapse; }}
                td, th {{ padding: 8px; border-bottom: 1px solid #e5e7eb; text-align: left; }}
                .footer {{ text-align: center; margin-top: 24px; font-size: 12px; color: #6b7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{escape(heading)}</h1></div>
                <div class="content">{body_html}</div>
                <div class="footer">
                    <p>&copy; {datetime.utcnow().year} {escape(self.from_name)}. All rights reserved.</p>
                </div>
            </div>
        </body>
        </html>
        """

    @staticmethod
    def _rows(rows: List[Tuple[str, Any]]) -> str:
        cells = "".join(
            f"<tr><th>{escape(str(label))}</th><td>{escape(str(value))}</td></tr>"
            for label, value in rows
        )
        return f"<table>{cells}</table>"

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    async def send_welcome_email(self, to_email: str, user_name: str) -> bool:
        subject = f"Welcome to {self.from_name}!"
        html_content = self._layout(
            f"Welcome, {user_name}!",
            f"<p>Thanks for creating an account with {escape(self.from_name)}.</p>"
            "<p>Browse our latest phones and accessories, and every purchase comes with "
            "automatic warranty registration.</p>"
            f'<p style="text-align:center"><a class="button" href="{self.frontend_url}/products">Start shopping</a></p>'
        )
        text_content = f"Welcome {user_name}! Start shopping at {self.frontend_url}/products"
        return await self.send_email(to_email, subject, html_content, text_content)

    async def send_password_reset_email(self, to_email: str, user_name: str, reset_token: str) -> bool:
        reset_link = settings.get_reset_password_url(reset_token)
        minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
        subject = f"Reset your password - {self.from_name}"
        html_content = self._layout(
            "Password Reset Request",
            f"<p>Hi {escape(user_name or 'there')},</p>"
            "<p>We received a request to reset your password. Click below to choose a new one:</p>"
            f'<p style="text-align:center"><a class="button" href="{reset_link}">Reset Password</a></p>'
            f"<p>This link expires in {minutes} minutes. If you didn't ask for this, ignore this email.</p>"
        )
        text_content = (
            f"Hi {user_name or 'there'},\n\nReset your password here: {reset_link}\n\n"
            f"This link expires in {minutes} minutes."
        )
        return await self.send_email(to_email, subject, html_content, text_content)

    async def send_password_reset_confirmation(self, to_email: str, user_name: str) -> bool:
        subject = f"Your password was changed - {self.from_name}"
        html_content = self._layout(
            "Password Changed",
            f"<p>Hi {escape(user_name or 'there')},</p>"
            "<p>Your password has been reset successfully. If this wasn't you, contact us immediately.</p>"
        )
        return await self.send_email(to_email, subject, html_content, "Your password has been reset successfully.")

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def send_order_confirmation(
        self,
        to_email: str,
        user_name: str,
        order_id: str,
        total: Any,
        items: List[Tuple[str, int, Any]],
    ) -> bool:
        """items: (product name, quantity, unit price)"""
        subject = f"Order Confirmation #{order_id[:8].upper()}"
        lines = "".join(
            f"<tr><td>{escape(name)}</td><td>{qty}</td><td>&#8377;{price}</td></tr>"
            for name, qty, price in items
        )
        html_content = self._layout(
            "Thank you for your order!",
            f"<p>Hi {escape(user_name)},</p>"
            f"<p>We've received your order <strong>#{order_id[:8].upper()}</strong>.</p>"
            f"<table><tr><th>Product</th><th>Qty</th><th>Price</th></tr>{lines}</table>"
            f"<p><strong>Total: &#8377;{total}</strong></p>"
            f'<p><a class="button" href="{self.frontend_url}/orders/{order_id}">View order</a></p>'
        )
        text_content = f"Order #{order_id[:8].upper()} received. Total: Rs.{total}"
        return await self.send_email(to_email, subject, html_content, text_content)

    async def send_order_status_update(
        self,
        to_email: str,
        user_name: str,
        order_id: str,
        status: str,
        tracking_number: Optional[str] = None,
    ) -> bool:
        message = STATUS_MESSAGES.get(status, f"Your order status is now {status}.")
        subject = f"Order #{order_id[:8].upper()} is {status}"
        tracking = f"<p>Tracking number: <strong>{escape(tracking_number)}</strong></p>" if tracking_number else ""
        html_content = self._layout(
            "Order Update",
            f"<p>Hi {escape(user_name)},</p><p>{message}</p>{tracking}"
            f'<p><a class="button" href="{self.frontend_url}/orders/{order_id}">Track order</a></p>'
        )
        return await self.send_email(to_email, subject, html_content, message)

    # ------------------------------------------------------------------
    # Warranties and claims
    # ------------------------------------------------------------------

    async def send_warranty_registration(
        self,
        to_email: str,
        user_name: str,
        product_name: str,
        expiry_date: date,
        serial_number: Optional[str] = None,
    ) -> bool:
        subject = f"Warranty registered: {product_name}"
        rows = [("Product", product_name), ("Valid until", expiry_date.strftime("%d %b %Y"))]
        if serial_number:
            rows.append(("Serial number", serial_number))
        html_content = self._layout(
            "Warranty Registered",
            f"<p>Hi {escape(user_name)},</p><p>Your warranty is now active.</p>{self._rows(rows)}"
        )
        text_content = f"Warranty for {product_name} is valid until {expiry_date.isoformat()}."
        return await self.send_email(to_email, subject, html_content, text_content)

    async def send_warranty_expiry_reminder(
        self,
        to_email: str,
        user_name: str,
        product_name: str,
        expiry_date: date,
        days_left: int,
    ) -> bool:
        subject = f"Your warranty for {product_name} expires in {days_left} days"
        html_content = self._layout(
            "Warranty Expiring Soon",
            f"<p>Hi {escape(user_name)},</p>"
            f"<p>The warranty on your <strong>{escape(product_name)}</strong> expires on "
            f"{expiry_date.strftime('%d %b %Y')} ({days_left} days left).</p>"
            "<p>If you have any issue with the device, raise a claim before it expires.</p>"
            f'<p><a class="button" href="{self.frontend_url}/warranties">My warranties</a></p>'
        )
        return await self.send_email(to_email, subject, html_content, subject)

    async def send_claim_status_update(
        self,
        to_email: str,
        user_name: str,
        claim_id: str,
        product_name: str,
        status: str,
        admin_notes: Optional[str] = None,
    ) -> bool:
        message = CLAIM_MESSAGES.get(status, f"Your claim status is now {status}.")
        subject = f"Warranty claim #{claim_id[:8].upper()} {status}"
        notes = f"<p><em>Notes from our team:</em> {escape(admin_notes)}</p>" if admin_notes else ""
        html_content = self._layout(
            "Claim Update",
            f"<p>Hi {escape(user_name)},</p>"
            f"<p>Claim for <strong>{escape(product_name)}</strong>: {message}</p>{notes}"
        )
        return await self.send_email(to_email, subject, html_content, message)

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------

    async def send_admin_alert(self, subject: str, message: str, details: Optional[Dict[str, Any]] = None) -> bool:
        if not self.admin_email:
            logger.warning(f"[Email] No admin address configured, dropping alert '{subject}'")
            return False
        body = f"<p>{escape(message)}</p>"
        if details:
            body += self._rows(list(details.items()))
        return await self.send_email(
            self.admin_email,
            f"[Admin Alert] {subject}",
            self._layout(subject, body),
            message,
        )

    async def send_report(self, title: str, summary: Dict[str, Any], rows: Optional[List[Tuple[str, Any]]] = None) -> bool:
        """Periodic report to the admin mailbox"""
        if not self.admin_email:
            logger.warning(f"[Email] No admin address configured, dropping report '{title}'")
            return False
        body = self._rows(list(summary.items()))
        if rows:
            body += "<h3>Details</h3>" + self._rows(rows)
        text_content = "\n".join(f"{k}: {v}" for k, v in summary.items())
        return await self.send_email(self.admin_email, title, self._layout(title, body), text_content)


# Singleton instance
email_service = EmailService()
