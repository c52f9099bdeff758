"""
Companion Backend — Email Service Unit Tests
==============================================

What:  Delivery policy of EmailService: skipped without a token, never
       raising on Postmark failures.
"""

from unittest.mock import MagicMock

import pytest

from companion.services.email_service import EmailService


class TestEmailService:

    @pytest.mark.asyncio
    async def test_without_token_emails_are_skipped(self):
        service = EmailService(server_token="")
        assert service.client is None
        assert await service.send_verification_email("a@example.com", "A", "http://x") is False

    @pytest.mark.asyncio
    async def test_sends_through_postmark(self):
        service = EmailService(server_token="pm-token", sender="noreply@companion.app")
        service.client = MagicMock()
        service.client.emails.send.return_value = {"MessageID": "m-1"}

        assert await service.send_kyc_rejected_email("a@example.com", "A", "Blurry <photo>") is True

        kwargs = service.client.emails.send.call_args.kwargs
        assert kwargs["To"] == "a@example.com"
        assert kwargs["Tag"] == "kyc-rejected"
        assert "Blurry &lt;photo&gt;" in kwargs["HtmlBody"]

    @pytest.mark.asyncio
    async def test_postmark_failure_is_swallowed(self):
        service = EmailService(server_token="pm-token")
        service.client = MagicMock()
        service.client.emails.send.side_effect = RuntimeError("Postmark down")

        assert await service.send_kyc_approved_email("a@example.com", "A") is False
