"""
Companion Backend — Transactional Email Service
=================================================

What:  Sends account and KYC notification emails through Postmark.
Why:   Users need to verify their address and hear back about identity
       review without polling the app.
How:   postmarker's PostmarkClient (synchronous) runs in a worker thread.

Delivery Policy:
    Email is a side effect, never a precondition. A missing token logs
    the email and skips it; a Postmark failure is logged and swallowed so
    that, for example, a KYC approval is never rolled back because the
    notification bounced.
"""

import asyncio
import logging
from html import escape
from typing import Optional

from postmarker.core import PostmarkClient

from companion.config import settings

logger = logging.getLogger(__name__)

_WRAPPER = (
    '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
    "{body}"
    "</div>"
)


class EmailService:
    def __init__(self, server_token: Optional[str] = None, sender: Optional[str] = None):
        token = server_token if server_token is not None else settings.postmark_server_token
        self.sender = sender or settings.email_sender
        if not token:
            logger.warning("POSTMARK_SERVER_TOKEN not set - emails will be logged but not sent")
            self.client = None
        else:
            self.client = PostmarkClient(server_token=token)
            logger.info("Postmark email client initialized")

    async def send(self, to: str, subject: str, html_body: str, tag: str) -> bool:
        """
        Send one email. Returns True if Postmark accepted it.

        Never raises: failures are logged at WARNING with the tag so that
        they can be found and resent by hand.
        """
        if self.client is None:
            logger.info("Email skipped (no client): tag=%s to=%s subject=%s", tag, to, subject)
            return False
        try:
            response = await asyncio.to_thread(
                self.client.emails.send,
                From=self.sender,
                To=to,
                Subject=subject,
                HtmlBody=_WRAPPER.format(body=html_body),
                Tag=tag,
            )
        except Exception as e:
            logger.warning("Failed to send %s email to %s: %s", tag, to, str(e))
            return False
        logger.info("Sent %s email to %s (MessageID=%s)", tag, to, response.get("MessageID"))
        return True

    # ── Templates ─────────────────────────────────────────────────────────

    async def send_verification_email(self, to: str, name: str, verification_url: str) -> bool:
        body = (
            f"<h2>Welcome to Companion App, {escape(name)}!</h2>"
            "<p>Please verify your email address to get started.</p>"
            f'<p><a href="{verification_url}">Verify Email</a></p>'
            f"<p>Or copy this link: <code>{verification_url}</code></p>"
            '<p style="color: #666; font-size: 12px;">This link expires in 24 hours.</p>'
        )
        return await self.send(to, "Verify your email address", body, "verify-email")

    async def send_kyc_submitted_email(self, to: str, name: str) -> bool:
        body = (
            f"<h2>KYC Submission Received, {escape(name)}</h2>"
            "<p>Thank you for submitting your identity verification documents.</p>"
            "<p>We'll review your submission within 24-48 hours and notify you of the status.</p>"
        )
        return await self.send(to, "KYC Verification Submitted", body, "kyc-submitted")

    async def send_kyc_approved_email(self, to: str, name: str) -> bool:
        body = (
            f"<h2>Congratulations {escape(name)}!</h2>"
            "<p>Your identity has been verified. You're now able to:</p>"
            "<ul><li>Be visible to subscribers</li><li>Accept subscriptions</li>"
            "<li>Earn money</li><li>Chat with subscribers</li></ul>"
            "<p>Start building your audience today!</p>"
        )
        return await self.send(to, "KYC Verified - Start Earning!", body, "kyc-approved")

    async def send_kyc_rejected_email(self, to: str, name: str, reason: str) -> bool:
        body = (
            f"<h2>{escape(name)}, Your KYC Verification</h2>"
            "<p>Unfortunately, your verification couldn't be approved.</p>"
            f"<p><strong>Reason:</strong> {escape(reason)}</p>"
            "<p>You can try again with clearer documents.</p>"
        )
        return await self.send(to, "KYC Verification Status", body, "kyc-rejected")


# ── Singleton Instance ────────────────────────────────────────────────────
email_service = EmailService()
