from postmarker.core import PostmarkClient
from html import escape
import os
import logging

logger = logging.getLogger(__name__)

DEFAULT_SENDER = os.getenv("EMAIL_SENDER", "Valoris <no-reply@valoris.local>")
WELCOME_TAG = "creator-welcome"

def login_url() -> str:
    app_url = (os.getenv("APP_URL") or "http://localhost:5173").rstrip("/")
    return f"{app_url}/login"

class EmailService:
    def __init__(self):
        postmark_token = os.getenv("POSTMARK_SERVER_TOKEN")
        if not postmark_token:
            logger.warning("POSTMARK_SERVER_TOKEN not set - emails will be logged but not sent")
            self.client = None
        else:
            self.client = PostmarkClient(server_token=postmark_token)
            logger.info("Postmark email client initialized")

    def send_welcome_email(self, recipient: str, name: str, link: str = None) -> bool:
        """Welcome mail for a creator whose account was activated by payment.

        Best effort: failures are logged and reported as False, never raised.
        """
        link = link or login_url()
        try:
            if not self.client:
                logger.info(f"[DEV MODE] Welcome email logged (not sent) to {recipient}")
                return True

            response = self.client.emails.send(
                From=DEFAULT_SENDER,
                To=recipient,
                Subject="Välkommen till Valoris",
                HtmlBody=self._build_welcome_html(name, link),
                TextBody=self._build_welcome_text(name, link),
                TrackLinks="HtmlOnly",
                Tag=WELCOME_TAG,
            )
            logger.info(f"Welcome email sent to {recipient}: {response['MessageID']}")
            return True
        except Exception as e:
            logger.error(f"Failed to send welcome email to {recipient}: {e}")
            return False

    def _build_welcome_html(self, name: str, link: str) -> str:
        return f"""
            <html>
            <body style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2>Välkommen {escape(name)}!</h2>
                <p>Ditt konto är nu <strong>aktivt efter betalning</strong>.</p>
                <p>Du kan logga in direkt här:</p>
                <p>
                    <a href="{escape(link, quote=True)}"
                       style="display: inline-block; padding: 10px 16px; background: #111; color: #fff;
                              border-radius: 8px; text-decoration: none;">
                        Logga in
                    </a>
                </p>
                <p style="margin-top: 16px; color: #666;">/Valoris</p>
            </body>
            </html>
            """

    def _build_welcome_text(self, name: str, link: str) -> str:
        return (
            f"Välkommen {name}!\n\n"
            "Ditt konto är nu aktivt efter betalning.\n"
            f"Logga in här: {link}\n\n"
            "/Valoris\n"
        )

email_service = EmailService()
