from app.core.config import settings
from loguru import logger
import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart


async def send_email_smtp(email_to: str, subject: str, body: str) -> bool:
    try:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"
        message["To"] = email_to

        html_part = MIMEText(body, "html")
        message.attach(html_part)

        await aiosmtplib.send(
            message,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            start_tls=settings.SMTP_TLS,
        )

        logger.info(f"Email sent successfully to {email_to}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email: {str(e)}")
        return False


def _layout(heading: str, content: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
    </head>
    <body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; background-color: #f7f7f7;">
        <table cellpadding="0" cellspacing="0" border="0" width="100%" style="background-color: #f7f7f7; padding: 20px 0;">
            <tr>
                <td align="center">
                    <table cellpadding="0" cellspacing="0" border="0" width="600" style="max-width: 600px; background-color: #ffffff; border-radius: 8px;">
                        <tr>
                            <td style="padding: 30px; text-align: center; background: linear-gradient(135deg, #7dd56f 0%, #28b487 100%); border-radius: 8px 8px 0 0;">
                                <h1 style="margin: 0; color: #ffffff; font-size: 28px; font-weight: 600;">Natours</h1>
                            </td>
                        </tr>
                        <tr>
                            <td style="padding: 40px 30px;">
                                <h2 style="margin: 0 0 20px 0; color: #333333; font-size: 22px;">{heading}</h2>
                                {content}
                            </td>
                        </tr>
                    </table>
                </td>
            </tr>
        </table>
    </body>
    </html>
    """


def _button(url: str, label: str) -> str:
    return (
        f'<p style="text-align: center; margin: 30px 0;">'
        f'<a href="{url}" style="background-color: #55c57a; color: #ffffff; padding: 12px 28px; '
        f'border-radius: 100px; text-decoration: none; font-weight: 600;">{label}</a></p>'
    )


class Email:
    """Templated messages to one user; each send returns True when the SMTP server accepted it"""

    def __init__(self, email: str, name: str, url: str):
        self.to = email
        self.first_name = (name or "").split(" ")[0]
        self.url = url

    async def send(self, subject: str, heading: str, content: str) -> bool:
        return await send_email_smtp(self.to, subject, _layout(heading, content))

    async def send_welcome(self) -> bool:
        content = (
            f'<p style="color: #555555; font-size: 16px; line-height: 24px;">Hi {self.first_name},</p>'
            '<p style="color: #555555; font-size: 16px; line-height: 24px;">'
            "We're excited to have you on board. Upload a profile photo so our guides can get to know you."
            "</p>"
            + _button(self.url, "Upload user photo")
        )
        return await self.send("Welcome to the Natours family!", "Welcome to Natours!", content)

    async def send_password_reset(self) -> bool:
        minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
        content = (
            f'<p style="color: #555555; font-size: 16px; line-height: 24px;">Hi {self.first_name},</p>'
            '<p style="color: #555555; font-size: 16px; line-height: 24px;">'
            "Forgot your password? Submit a PATCH request with your new password and password_confirm to the link below."
            "</p>"
            + _button(self.url, "Reset your password")
            + f'<p style="color: #999999; font-size: 14px;">The link is valid for only {minutes} minutes. '
              "If you didn't forget your password, please ignore this email.</p>"
        )
        return await self.send(
            f"Your password reset token (valid for only {minutes} minutes)",
            "Reset your password",
            content,
        )
