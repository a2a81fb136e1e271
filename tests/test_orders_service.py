"""Tests for the order state machine and payment flows (app/services/orders.py)"""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock, MagicMock, patch

from app.errors import BadRequestError, ForbiddenError, GatewayError, NotFoundError
from app.integrations.pushinpay import PixCharge, PushinPayError, WebhookNotification
from app.models.event import Event, EventStatus
from app.models.order import Order, OrderStatus
from app.models.product import Product, Price
from app.models.user import User, UserRole
from app.services import orders


def make_user(id=2, role=UserRole.USER):
    user = Mock(spec=User)
    user.id = id
    user.role = role
    return user


def make_price(id=10, currency="BRL", amount=Decimal("29.90"), product_active=True):
    product = Mock(spec=Product)
    product.id = 1
    product.name = "Pacote Essencial"
    product.is_active = product_active
    price = Mock(spec=Price)
    price.id = id
    price.amount = amount
    price.currency = currency
    price.category = "Mensal"
    price.delivery_link = "https://t.me/+secret"
    price.product = product
    return price


def make_order(id=1, status=OrderStatus.PENDING, user_id=2, tx_id="tx-1"):
    order = Mock(spec=Order)
    order.id = id
    order.status = status
    order.user_id = user_id
    order.pushinpay_tx_id = tx_id
    order.download_link = None
    order.price = make_price()
    return order


def make_charge(id="tx-abc"):
    return PixCharge(id=id, qr_code="000201...", qr_code_base64="iVBOR", status="created",
                     value_cents=2990, raw={})


def added_events(mock_db):
    return [c[0][0] for c in mock_db.add.call_args_list if isinstance(c[0][0], Event)]


class TestTransition:
    @pytest.mark.parametrize("trigger,expected", [
        ("paid", OrderStatus.COMPLETED),
        ("forced", OrderStatus.COMPLETED),
        ("expired", OrderStatus.FAILED),
        ("gateway_error", OrderStatus.FAILED),
        ("abandoned", OrderStatus.FAILED),
    ])
    def test_pending_moves_to_outcome(self, mock_db, trigger, expected):
        order = make_order()
        assert orders.transition(mock_db, order, trigger) == expected
        assert order.status == expected

    def test_completion_releases_delivery_link(self, mock_db):
        order = make_order()
        orders.transition(mock_db, order, "paid")
        assert order.download_link == "https://t.me/+secret"

    def test_failure_releases_nothing(self, mock_db):
        order = make_order()
        orders.transition(mock_db, order, "expired")
        assert order.download_link is None

    @pytest.mark.parametrize("status", [OrderStatus.COMPLETED, OrderStatus.FAILED])
    @pytest.mark.parametrize("trigger", ["paid", "expired", "forced"])
    def test_terminal_orders_ignore_triggers(self, mock_db, status, trigger):
        order = make_order(status=status)
        assert orders.transition(mock_db, order, trigger) is None
        assert order.status == status

    def test_unknown_trigger_is_ignored(self, mock_db):
        order = make_order()
        assert orders.transition(mock_db, order, "refunded") is None
        assert order.status == OrderStatus.PENDING


class TestFormatAmount:
    def test_brl_uses_brazilian_separators(self):
        assert orders.format_amount(Decimal("1234.5"), "BRL") == "R$ 1.234,50"

    def test_usd_format(self):
        assert orders.format_amount(Decimal("1234.5"), "usd") == "$1,234.50"


class TestInitiatePayment:
    def _setup(self, mock_db, price):
        mock_db.first.return_value = price
        mock_db.refresh = Mock(side_effect=lambda o: setattr(o, "id", 55))

    def test_creates_pending_order_and_stores_tx_id(self, mock_db):
        self._setup(mock_db, make_price())

        with patch("app.services.orders.settings_service.get_payment_gateway", return_value="pushinpay"), \
                patch("app.services.orders.pushinpay.create_pix_charge", return_value=make_charge()) as create:
            result = orders.initiate_payment(mock_db, 10, make_user())

        order = result.order
        assert order.status == OrderStatus.PENDING
        assert order.user_id == 2
        assert order.pushinpay_tx_id == "tx-abc"
        value_cents, webhook_url = create.call_args[0]
        assert value_cents == 2990
        assert webhook_url.endswith("/api/payments/webhook?order_id=55")
        assert result.expires_at > datetime.now(timezone.utc)

    def test_missing_price_raises_not_found(self, mock_db):
        with pytest.raises(NotFoundError):
            orders.initiate_payment(mock_db, 99, make_user())
        mock_db.add.assert_not_called()

    def test_inactive_product_rejected_without_order(self, mock_db):
        self._setup(mock_db, make_price(product_active=False))

        with pytest.raises(BadRequestError) as exc_info:
            orders.initiate_payment(mock_db, 10, make_user())

        assert exc_info.value.message == "Product is not available"
        mock_db.add.assert_not_called()

    def test_usd_price_points_to_manual_flow(self, mock_db):
        self._setup(mock_db, make_price(currency="USD"))

        with pytest.raises(BadRequestError) as exc_info:
            orders.initiate_payment(mock_db, 10, make_user())

        assert exc_info.value.extra == {"currency": "USD", "manualPayment": True}
        mock_db.add.assert_not_called()

    def test_unsupported_gateway_rejected(self, mock_db):
        self._setup(mock_db, make_price())

        with patch("app.services.orders.settings_service.get_payment_gateway", return_value="stripe"):
            with pytest.raises(BadRequestError):
                orders.initiate_payment(mock_db, 10, make_user())

        mock_db.add.assert_not_called()

    def test_gateway_failure_marks_order_failed(self, mock_db):
        price = make_price()
        self._setup(mock_db, price)

        with patch("app.services.orders.settings_service.get_payment_gateway", return_value="pushinpay"), \
                patch("app.services.orders.pushinpay.create_pix_charge",
                      side_effect=PushinPayError("HTTP 500")):
            with pytest.raises(GatewayError) as exc_info:
                orders.initiate_payment(mock_db, 10, make_user())

        assert exc_info.value.extra == {"orderId": 55}
        order = mock_db.add.call_args_list[0][0][0]
        assert order.status == OrderStatus.FAILED
        assert order.pushinpay_tx_id is None
        event = added_events(mock_db)[0]
        assert event.status == EventStatus.FAILED
        assert event.error_message == "HTTP 500"

    def test_non_json_gateway_reply_marks_order_failed(self, mock_db):
        self._setup(mock_db, make_price())
        resp = MagicMock()
        resp.status_code = 200
        resp.json.side_effect = ValueError("Expecting value")
        client = MagicMock()
        client.__enter__.return_value = client
        client.post.return_value = resp

        with patch("app.services.orders.settings_service.get_payment_gateway", return_value="pushinpay"), \
                patch("app.integrations.pushinpay.settings") as pushinpay_settings, \
                patch("app.integrations.pushinpay.httpx.Client", return_value=client):
            pushinpay_settings.pushinpay_api_token = "token-123"
            pushinpay_settings.pushinpay_api_base = "https://api.test/api"
            with pytest.raises(GatewayError) as exc_info:
                orders.initiate_payment(mock_db, 10, make_user())

        assert exc_info.value.extra == {"orderId": 55}
        order = mock_db.add.call_args_list[0][0][0]
        assert order.status == OrderStatus.FAILED


class TestHandleWebhook:
    def test_paid_completes_order(self, mock_db):
        order = make_order()
        mock_db.first.return_value = order

        result = orders.handle_webhook(mock_db, WebhookNotification("tx-1", "paid", 2990, {}))

        assert result.applied is True
        assert order.status == OrderStatus.COMPLETED
        assert order.download_link == "https://t.me/+secret"
        assert added_events(mock_db)[0].status == EventStatus.PROCESSED
        mock_db.commit.assert_called_once()

    def test_expired_fails_order(self, mock_db):
        order = make_order()
        mock_db.first.return_value = order

        result = orders.handle_webhook(mock_db, WebhookNotification("tx-1", "expired", None, {}))

        assert result.applied is True
        assert order.status == OrderStatus.FAILED

    def test_created_status_is_acknowledged_without_change(self, mock_db):
        order = make_order()
        mock_db.first.return_value = order

        result = orders.handle_webhook(mock_db, WebhookNotification("tx-1", "created", None, {}))

        assert result.applied is False
        assert order.status == OrderStatus.PENDING
        assert added_events(mock_db)[0].status == EventStatus.IGNORED

    def test_late_paid_on_failed_order_is_ignored(self, mock_db):
        order = make_order(status=OrderStatus.FAILED)
        mock_db.first.return_value = order

        result = orders.handle_webhook(mock_db, WebhookNotification("tx-1", "paid", None, {}))

        assert result.applied is False
        assert order.status == OrderStatus.FAILED
        assert order.download_link is None

    def test_unknown_transaction_raises_without_mutation(self, mock_db):
        with pytest.raises(NotFoundError):
            orders.handle_webhook(mock_db, WebhookNotification("tx-unknown", "paid", None, {}))

        mock_db.add.assert_not_called()
        mock_db.commit.assert_not_called()

    def test_order_hint_binds_missing_transaction_id(self, mock_db):
        order = make_order(tx_id=None)
        mock_db.first.side_effect = [None, order]

        result = orders.handle_webhook(mock_db, WebhookNotification("tx-9", "paid", None, {}), order_hint=1)

        assert result.order is order
        assert order.pushinpay_tx_id == "tx-9"
        assert order.status == OrderStatus.COMPLETED

    def test_order_hint_with_other_transaction_is_rejected(self, mock_db):
        order = make_order(tx_id="tx-other")
        mock_db.first.side_effect = [None, order]

        with pytest.raises(NotFoundError):
            orders.handle_webhook(mock_db, WebhookNotification("tx-9", "paid", None, {}), order_hint=1)

        assert order.status == OrderStatus.PENDING


class TestGetOrder:
    def test_owner_can_read(self, mock_db):
        order = make_order(user_id=2)
        mock_db.first.return_value = order
        assert orders.get_order(mock_db, 1, make_user(id=2)) is order

    def test_admin_can_read_any_order(self, mock_db):
        mock_db.first.return_value = make_order(user_id=2)
        assert orders.get_order(mock_db, 1, make_user(id=3, role=UserRole.ADMIN))

    def test_other_user_gets_forbidden(self, mock_db):
        mock_db.first.return_value = make_order(user_id=2)
        with pytest.raises(ForbiddenError):
            orders.get_order(mock_db, 1, make_user(id=8))

    def test_missing_order(self, mock_db):
        with pytest.raises(NotFoundError):
            orders.get_order(mock_db, 1, make_user())


class TestForceComplete:
    def _counter(self, clicks):
        counter = Mock()
        counter.limit = 3
        counter.increment.return_value = clicks
        return counter

    def test_disabled_setting_returns_forbidden(self, mock_db):
        mock_db.first.return_value = make_order()
        with patch("app.services.orders.settings_service.get_flag", return_value=False):
            with pytest.raises(ForbiddenError):
                orders.force_complete(mock_db, 1, make_user(), counter=self._counter(1))

    def test_below_threshold_only_counts(self, mock_db):
        order = make_order()
        mock_db.first.return_value = order
        counter = self._counter(1)

        with patch("app.services.orders.settings_service.get_flag", return_value=True):
            result = orders.force_complete(mock_db, 1, make_user(), counter=counter)

        assert result.success is False
        assert result.clicks == 1
        assert result.clicks_required == 3
        assert order.status == OrderStatus.PENDING
        counter.reset.assert_not_called()

    def test_threshold_completes_order(self, mock_db):
        order = make_order()
        mock_db.first.return_value = order
        counter = self._counter(3)

        with patch("app.services.orders.settings_service.get_flag", return_value=True):
            result = orders.force_complete(mock_db, 1, make_user(), counter=counter)

        assert result.success is True
        assert order.status == OrderStatus.COMPLETED
        assert order.download_link == "https://t.me/+secret"
        assert added_events(mock_db)[0].type == "order.force_completed"
        counter.reset.assert_called_once_with(1)

    def test_completed_order_returns_success_without_counting(self, mock_db):
        mock_db.first.return_value = make_order(status=OrderStatus.COMPLETED)
        counter = self._counter(1)

        with patch("app.services.orders.settings_service.get_flag", return_value=True):
            result = orders.force_complete(mock_db, 1, make_user(), counter=counter)

        assert result.success is True
        counter.increment.assert_not_called()

    def test_failed_order_cannot_be_forced(self, mock_db):
        mock_db.first.return_value = make_order(status=OrderStatus.FAILED)

        with patch("app.services.orders.settings_service.get_flag", return_value=True):
            with pytest.raises(BadRequestError):
                orders.force_complete(mock_db, 1, make_user(), counter=self._counter(5))

    def test_other_users_order_is_forbidden(self, mock_db):
        mock_db.first.return_value = make_order(user_id=2)
        counter = self._counter(3)

        with pytest.raises(ForbiddenError):
            orders.force_complete(mock_db, 1, make_user(id=9), counter=counter)

        counter.increment.assert_not_called()


class TestBitcoinInstructions:
    def test_adds_three_percent_fee(self, mock_db):
        mock_db.first.return_value = make_price(currency="USD", amount=Decimal("100.00"))

        with patch("app.services.orders.settings_service.get_setting",
                   side_effect=lambda db, key, default=None: "bc1qwallet" if key == "btc_wallet_address" else "@suporte"):
            data = orders.bitcoin_instructions(mock_db, 10)

        assert data["total_usd"] == Decimal("103.00")
        assert data["wallet_address"] == "bc1qwallet"

    def test_brl_price_rejected(self, mock_db):
        mock_db.first.return_value = make_price(currency="BRL")
        with pytest.raises(BadRequestError):
            orders.bitcoin_instructions(mock_db, 10)

    def test_missing_wallet_rejected(self, mock_db):
        mock_db.first.return_value = make_price(currency="USD")
        with patch("app.services.orders.settings_service.get_setting", return_value=None):
            with pytest.raises(BadRequestError):
                orders.bitcoin_instructions(mock_db, 10)


class TestReconcilePendingOrders:
    def test_applies_gateway_outcomes(self, mock_db):
        paid = make_order(id=1, tx_id="tx-paid")
        expired = make_order(id=2, tx_id="tx-expired")
        waiting = make_order(id=3, tx_id="tx-waiting")
        abandoned = make_order(id=4, tx_id=None)
        mock_db.all.return_value = [paid, expired, waiting, abandoned]
        statuses = {"tx-paid": "paid", "tx-expired": "expired", "tx-waiting": "created"}

        with patch("app.services.orders.pushinpay.get_transaction",
                   side_effect=lambda tx: {"id": tx, "status": statuses[tx]}):
            summary = orders.reconcile_pending_orders(mock_db)

        assert summary == {"checked": 4, "completed": 1, "failed": 2, "unchanged": 1, "errors": 0}
        assert paid.status == OrderStatus.COMPLETED
        assert expired.status == OrderStatus.FAILED
        assert waiting.status == OrderStatus.PENDING
        assert abandoned.status == OrderStatus.FAILED
        mock_db.commit.assert_called_once()

    def test_gateway_errors_leave_order_pending(self, mock_db):
        order = make_order()
        mock_db.all.return_value = [order]

        with patch("app.services.orders.pushinpay.get_transaction", side_effect=PushinPayError("429")):
            summary = orders.reconcile_pending_orders(mock_db)

        assert summary["errors"] == 1
        assert order.status == OrderStatus.PENDING

    def test_unexpected_error_does_not_abort_sweep(self, mock_db):
        broken = make_order(id=1, tx_id="tx-broken")
        abandoned = make_order(id=2, tx_id=None)
        mock_db.all.return_value = [broken, abandoned]

        with patch("app.services.orders.pushinpay.get_transaction", side_effect=ValueError("bad body")):
            summary = orders.reconcile_pending_orders(mock_db)

        assert summary == {"checked": 2, "completed": 0, "failed": 1, "unchanged": 0, "errors": 1}
        assert broken.status == OrderStatus.PENDING
        assert abandoned.status == OrderStatus.FAILED
        mock_db.commit.assert_called_once()
