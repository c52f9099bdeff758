"""
Companion Backend — Subscription & Stripe Connect Tests
=========================================================

What we test:
    ✅ Subscribing creates a Stripe subscription at the tier price
    ✅ Self-subscription, unknown creators and duplicates are refused
       before Stripe is called
    ✅ SetupIntent path attaches the collected card
    ✅ Cancel is subscriber-only and survives Stripe failures
    ✅ Connect authorize URL, callback state check, dev-skip guard
"""

from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import select

from companion.config import settings
from companion.exceptions import PaymentProviderError
from companion.models.subscription import Subscription, SubscriptionStatus, SubscriptionTier
from companion.services.payment_base import CreatedSubscription

from conftest import auth_headers


class TestCreateSubscription:

    @pytest.mark.asyncio
    async def test_subscribe(self, client, db_session, fan, creator, gateway):
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "PREMIUM"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ACTIVE"
        assert body["tier"] == "PREMIUM"
        assert body["price_cents"] == 999
        assert body["stripe_subscription_id"] == "sub_test_1"
        assert body["renews_at"] is not None
        assert body["creator"]["name"] == "Creator"

        kwargs = gateway.create_subscription.call_args.kwargs
        assert kwargs["price_cents"] == 999
        assert kwargs["product_name"] == "Creator - PREMIUM Tier"
        assert kwargs["customer_id"] == "cus_test_1"
        assert kwargs["default_payment_method"] is None
        gateway.attach_payment_method.assert_not_called()

        await db_session.refresh(fan)
        assert fan.stripe_customer_id == "cus_test_1"

    def test_pricing_table(self):
        assert SubscriptionTier.PRICING == {"BASIC": 499, "PREMIUM": 999, "VIP": 2499}

    @pytest.mark.asyncio
    async def test_payment_method_attached(self, client, fan, creator, gateway):
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "VIP", "payment_method_id": "pm_card_visa"},
        )
        assert response.status_code == 200
        gateway.attach_payment_method.assert_awaited_once_with("pm_card_visa", "cus_test_1")
        assert gateway.create_subscription.call_args.kwargs["default_payment_method"] == "pm_card_visa"

    @pytest.mark.asyncio
    async def test_period_end_missing_defaults_to_thirty_days(self, client, fan, creator, gateway):
        gateway.create_subscription.return_value = CreatedSubscription(
            id="sub_test_2", status="incomplete", current_period_end=None
        )
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "BASIC"},
        )
        assert response.status_code == 200
        assert response.json()["renews_at"] is not None

    @pytest.mark.asyncio
    async def test_invalid_tier(self, client, fan, creator, gateway):
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "GOLD"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cannot_subscribe_to_self(self, client, creator, gateway):
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(creator),
            json={"creator_id": str(creator.id), "tier": "BASIC"},
        )
        assert response.status_code == 400
        gateway.create_subscription.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_creator(self, client, fan, make_user, gateway):
        not_a_creator = await make_user()
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(not_a_creator.id), "tier": "BASIC"},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_duplicate_refused_before_stripe(self, client, fan, creator, make_subscription, gateway):
        await make_subscription(fan, creator, status=SubscriptionStatus.PAUSED)
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "VIP"},
        )
        assert response.status_code == 409
        gateway.ensure_customer.assert_not_called()
        gateway.create_subscription.assert_not_called()

    @pytest.mark.asyncio
    async def test_resubscribe_after_cancel(self, client, fan, creator, make_subscription, gateway):
        await make_subscription(fan, creator, status=SubscriptionStatus.CANCELLED)
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "BASIC"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_stripe_failure_creates_nothing(self, client, db_session, fan, creator, gateway):
        gateway.create_subscription.side_effect = PaymentProviderError()
        response = await client.post(
            "/api/stripe/create-subscription",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "BASIC"},
        )
        assert response.status_code == 502
        assert "details" not in response.json()
        assert (await db_session.execute(select(Subscription))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_with_setup_intent(self, client, fan, creator, gateway):
        response = await client.post(
            "/api/stripe/create-subscription-with-payment",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "BASIC", "setup_intent_id": "seti_123"},
        )
        assert response.status_code == 200
        gateway.payment_method_from_setup_intent.assert_awaited_once_with("seti_123")
        gateway.attach_payment_method.assert_awaited_once_with("pm_test_1", "cus_test_1")
        assert gateway.create_subscription.call_args.kwargs["default_payment_method"] == "pm_test_1"

    @pytest.mark.asyncio
    async def test_with_setup_intent_refuses_duplicates(
        self, client, fan, creator, make_subscription, gateway
    ):
        await make_subscription(fan, creator)
        response = await client.post(
            "/api/stripe/create-subscription-with-payment",
            headers=auth_headers(fan),
            json={"creator_id": str(creator.id), "tier": "BASIC", "setup_intent_id": "seti_123"},
        )
        assert response.status_code == 409
        gateway.payment_method_from_setup_intent.assert_not_called()


class TestCancelAndList:

    @pytest.mark.asyncio
    async def test_cancel(self, client, db_session, fan, creator, make_subscription, gateway):
        subscription = await make_subscription(fan, creator)

        response = await client.post(
            "/api/subscriptions/cancel",
            headers=auth_headers(fan),
            json={"subscription_id": str(subscription.id)},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["cancelled_at"] is not None
        gateway.cancel_subscription.assert_awaited_once_with(subscription.stripe_subscription_id)

    @pytest.mark.asyncio
    async def test_cancel_survives_stripe_failure(self, client, fan, creator, make_subscription, gateway):
        gateway.cancel_subscription.side_effect = PaymentProviderError()
        subscription = await make_subscription(fan, creator)
        response = await client.post(
            "/api/subscriptions/cancel",
            headers=auth_headers(fan),
            json={"subscription_id": str(subscription.id)},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

    @pytest.mark.asyncio
    async def test_only_subscriber_cancels(self, client, fan, creator, make_subscription, gateway):
        subscription = await make_subscription(fan, creator)
        response = await client.post(
            "/api/subscriptions/cancel",
            headers=auth_headers(creator),
            json={"subscription_id": str(subscription.id)},
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cancel_twice(self, client, fan, creator, make_subscription, gateway):
        subscription = await make_subscription(fan, creator, status=SubscriptionStatus.CANCELLED)
        response = await client.post(
            "/api/subscriptions/cancel",
            headers=auth_headers(fan),
            json={"subscription_id": str(subscription.id)},
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_my_subscriptions_lists_active_only(
        self, client, fan, creator, make_user, make_subscription
    ):
        other = await make_user(creator=True)
        active = await make_subscription(fan, creator, tier=SubscriptionTier.VIP)
        await make_subscription(fan, other, status=SubscriptionStatus.CANCELLED)

        response = await client.get("/api/subscriptions/my-subscriptions", headers=auth_headers(fan))

        subscriptions = response.json()["subscriptions"]
        assert [s["id"] for s in subscriptions] == [str(active.id)]
        assert subscriptions[0]["creator"]["name"] == "Creator"


class TestStripeConnect:

    @pytest.mark.asyncio
    async def test_connect_url_not_configured(self, client, creator):
        response = await client.get("/api/stripe/connect-url", headers=auth_headers(creator))
        assert response.status_code == 503
        assert response.json()["error"] == "service_not_configured"

    @pytest.mark.asyncio
    async def test_connect_url(self, client, creator, monkeypatch):
        monkeypatch.setattr(settings, "stripe_connect_client_id", "ca_test_123")

        response = await client.get("/api/stripe/connect-url", headers=auth_headers(creator))

        url = urlparse(response.json()["url"])
        params = parse_qs(url.query)
        assert url.netloc == "connect.stripe.com"
        assert params["client_id"] == ["ca_test_123"]
        assert params["state"] == [str(creator.id)]
        assert params["scope"] == ["read_write"]
        assert params["redirect_uri"] == [f"{settings.app_base_url}/auth/stripe-connect"]
        assert params["stripe_user[email]"] == ["creator@example.com"]

    @pytest.mark.asyncio
    async def test_callback_stores_account(self, client, db_session, creator, gateway):
        response = await client.post(
            "/api/stripe/connect-callback",
            headers=auth_headers(creator),
            json={"code": "ac_123", "state": str(creator.id)},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "stripe_connect_id": "acct_test_1"}
        gateway.exchange_connect_code.assert_awaited_once_with("ac_123")
        await db_session.refresh(creator)
        assert creator.stripe_connect_id == "acct_test_1"

    @pytest.mark.asyncio
    async def test_callback_state_mismatch(self, client, creator, fan, gateway):
        response = await client.post(
            "/api/stripe/connect-callback",
            headers=auth_headers(creator),
            json={"code": "ac_123", "state": str(fan.id)},
        )
        assert response.status_code == 400
        gateway.exchange_connect_code.assert_not_called()

    @pytest.mark.asyncio
    async def test_dev_skip_only_in_development(self, client, creator):
        response = await client.post("/api/stripe/dev-skip", headers=auth_headers(creator))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_dev_skip_stores_mock_account(self, client, db_session, creator, monkeypatch):
        monkeypatch.setattr(settings, "environment", "development")

        response = await client.post("/api/stripe/dev-skip", headers=auth_headers(creator))

        assert response.status_code == 200
        account = response.json()["stripe_connect_id"]
        assert account.startswith("acct_mock_dev_bypass_")
        await db_session.refresh(creator)
        assert creator.stripe_connect_id == account
