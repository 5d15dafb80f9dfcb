# booking_api/services/email_service.py - AWS SES delivery for newsletter mail
import boto3
from botocore.exceptions import ClientError
from typing import Optional, Dict, Any
from booking_api.config import settings
import html as html_lib
import logging
import asyncio
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)

class EmailService:
    def __init__(self):
        logger.info(f"Initializing email service (region={settings.aws_region}, from={settings.from_email})")

        self.ses_client = boto3.client('sesv2', region_name=settings.aws_region)
        self.from_email = settings.from_email
        self.support_email = settings.support_email
        self.executor = ThreadPoolExecutor(max_workers=5)

    def unsubscribe_url(self, token: str) -> str:
        return f"{settings.frontend_url}/newsletter/unsubscribe?token={token}"

    async def send_welcome_email(
        self,
        email: str,
        name: Optional[str] = None,
        unsubscribe_token: Optional[str] = None
    ) -> bool:
        """Send welcome email to a new newsletter subscriber"""
        logger.info(f"📧 Sending newsletter welcome email to {email}")

        try:
            unsubscribe_url = self.unsubscribe_url(unsubscribe_token) if unsubscribe_token else None
            display_name = name or "there"

            subject = "Welcome to our Newsletter!"
            html_content = self._create_welcome_email_html(display_name, unsubscribe_url)
            text_content = self._create_welcome_email_text(display_name, unsubscribe_url)

            result = await self._send_email_async(
                to_email=email,
                subject=subject,
                html_content=html_content,
                text_content=text_content
            )

            logger.info(f"✅ Welcome email sent to {email} (message id: {result.get('message_id', 'N/A')})")
            return True

        except Exception as e:
            # Welcome mail never blocks a subscription
            logger.error(f"❌ Failed to send welcome email to {email}: {type(e).__name__}: {e}")
            return False

    async def send_campaign_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        from_name: Optional[str] = None,
        reply_to: Optional[str] = None
    ) -> Dict[str, Any]:
        """Send one campaign message; raises ValueError when SES refuses it"""
        return await self._send_email_async(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            text_content=text_content or "",
            reply_to=reply_to,
            from_name=from_name
        )

    async def _send_email_async(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str,
        reply_to: Optional[str] = None,
        from_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Send email using AWS SES (async wrapper)"""
        loop = asyncio.get_running_loop()

        # boto3 is blocking, keep it off the event loop
        return await loop.run_in_executor(
            self.executor,
            self._send_email_ses,
            to_email,
            subject,
            html_content,
            text_content,
            reply_to,
            from_name
        )

    def _send_email_ses(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str,
        reply_to: Optional[str] = None,
        from_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Send email using AWS SES"""
        try:
            body = {'Html': {'Data': html_content, 'Charset': 'UTF-8'}}
            if text_content:
                body['Text'] = {'Data': text_content, 'Charset': 'UTF-8'}

            email_params = {
                'FromEmailAddress': f"{from_name or settings.campaign_from_name} <{self.from_email}>",
                'Destination': {
                    'ToAddresses': [to_email]
                },
                'Content': {
                    'Simple': {
                        'Subject': {
                            'Data': subject,
                            'Charset': 'UTF-8'
                        },
                        'Body': body
                    }
                },
                'ReplyToAddresses': [reply_to or self.support_email]
            }

            if settings.ses_configuration_set:
                email_params['ConfigurationSetName'] = settings.ses_configuration_set

            response = self.ses_client.send_email(**email_params)

            logger.info(f"SES accepted message for {to_email}: {response.get('MessageId')}")

            return {
                'success': True,
                'message_id': response.get('MessageId'),
                'to_email': to_email
            }

        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']

            logger.error(f"🚨 SES error {error_code} for {to_email}: {error_message}")

            if error_code == 'MessageRejected':
                raise ValueError(f"Email rejected: {error_message}")
            elif error_code == 'MailFromDomainNotVerified':
                raise ValueError("Sender domain not verified with AWS SES")
            elif error_code == 'SendingPausedException':
                raise ValueError("SES sending is paused - check your account status")
            elif error_code == 'AccountSendingPausedException':
                raise ValueError("Account sending paused - likely due to bounce/complaint rate")
            else:
                raise ValueError(f"Email delivery failed: {error_message}")

        except Exception as e:
            logger.error(f"Unexpected SES failure for {to_email}: {type(e).__name__}: {e}")
            raise ValueError(f"Email sending failed: {e}")

    def _create_welcome_email_html(self, name: str, unsubscribe_url: Optional[str]) -> str:
        """Create HTML content for welcome email"""
        safe_name = html_lib.escape(name)
        footer = ""
        if unsubscribe_url:
            footer = (
                f'<p><a href="{unsubscribe_url}" style="color: #9ca3af; '
                f'text-decoration: none; font-size: 11px;">Unsubscribe</a></p>'
            )

        return f"""
        <!DOCTYPE html>
        <html lang="en">
        <head>
            <meta charset="UTF-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
            <title>Welcome to our Newsletter</title>
        </head>
        <body style="font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #1d4ed8;">Welcome aboard!</h1>
            <p>Hi {safe_name},</p>
            <p>Thank you for subscribing to our newsletter. You will hear from us about new
            facilities, inventory and booking offers.</p>
            <p>Best regards,<br>{settings.campaign_from_name}</p>
            <div style="text-align: center; margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 12px;">
                {footer}
            </div>
        </body>
        </html>
        """

    def _create_welcome_email_text(self, name: str, unsubscribe_url: Optional[str]) -> str:
        """Create plain text content for welcome email"""
        text = f"""
Welcome aboard!

Hi {name},

Thank you for subscribing to our newsletter. You will hear from us about new
facilities, inventory and booking offers.

Best regards,
{settings.campaign_from_name}
"""
        if unsubscribe_url:
            text += f"\n---\nUnsubscribe: {unsubscribe_url}\n"
        return text

# Global email service instance
email_service = EmailService()
