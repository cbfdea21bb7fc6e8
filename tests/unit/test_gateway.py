"""End-to-end tests for the Stripe Plus gateway facade."""

import json
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import stripe
from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from stripe_plus_gateway import StripePlusGateway, messages
from stripe_plus_gateway.config import Settings, StripeSettings
from stripe_plus_gateway.domain.descriptor import DictInvoiceLookup
from stripe_plus_gateway.infrastructure.database import create_db_engine
from stripe_plus_gateway.infrastructure.models import CustomerMapping, GatewayLog
from stripe_plus_gateway.models import GatewayConfigError


@pytest.fixture
def gateway(db_engine: Engine, gateway_meta: dict, log_sink) -> StripePlusGateway:
    return StripePlusGateway(
        meta=gateway_meta,
        engine=db_engine,
        invoice_lookup=DictInvoiceLookup({"42": "INV-42"}),
        log_sinks=[log_sink],
    )


def stored_mappings(engine: Engine) -> dict[int, str]:
    with Session(engine) as session:
        return {
            row.contact_id: row.stripe_id for row in session.query(CustomerMapping).all()
        }


def stored_logs(engine: Engine) -> list[GatewayLog]:
    with Session(engine) as session:
        rows = session.query(GatewayLog).order_by(GatewayLog.id).all()
        session.expunge_all()
        return rows


class TestHostPlumbing:
    """Tests for the gateway capabilities and settings contract."""

    def test_capabilities(self, gateway: StripePlusGateway) -> None:
        assert gateway.requires_customer_present() is False
        assert gateway.requires_cc_storage() is True
        assert gateway.requires_ach_storage() is True
        assert gateway.encryptable_fields() == ("live_api_key", "test_api_key")

    def test_edit_settings_valid(self, gateway: StripePlusGateway, gateway_meta: dict) -> None:
        assert gateway.edit_settings(gateway_meta) == gateway_meta
        assert gateway.errors() == {}

    def test_edit_settings_invalid(self, gateway: StripePlusGateway) -> None:
        meta = {"live_api_key": "", "test_api_key": "sk_test_x", "environment": "prod"}

        assert gateway.edit_settings(meta) == meta
        assert gateway.errors() == {
            "live_api_key": {"empty": messages.LIVE_API_KEY_EMPTY},
            "environment": {"format": messages.ENVIRONMENT_FORMAT},
        }

    def test_missing_meta_uses_settings(
        self, db_engine: Engine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that the key selected in settings is used when the host has no meta."""
        monkeypatch.setattr(
            "stripe_plus_gateway.config.settings",
            Settings(
                _env_file=None,
                stripe=StripeSettings(
                    live_api_key="sk_live_env",
                    test_api_key="sk_test_env",
                    environment="live_api_key",
                ),
            ),
        )
        gateway = StripePlusGateway(engine=db_engine, log_sinks=[])

        with patch.object(
            stripe.Charge, "create", return_value={"id": "ch_test123"}
        ) as create:
            result = gateway.process_stored_cc("cus_test123", "card_test123", 10)

        assert result["status"] == "approved"
        assert create.call_args.kwargs["api_key"] == "sk_live_env"

    def test_invalid_meta_raises(self, db_engine: Engine, contact: dict) -> None:
        gateway = StripePlusGateway(meta={"environment": "test_api_key"}, engine=db_engine)

        with pytest.raises(GatewayConfigError):
            gateway.store_cc({"merchant_token": "tok_visa"}, contact)


class TestInstall:
    """Tests for install and uninstall."""

    def test_install_and_uninstall(self) -> None:
        engine = create_db_engine("sqlite://")
        gateway = StripePlusGateway(meta={}, engine=engine)

        gateway.install()
        assert {"stripe_plus_meta", "gateway_logs"} <= set(inspect(engine).get_table_names())
        assert gateway.errors() == {}

        gateway.uninstall(1, last_instance=False)
        assert "stripe_plus_meta" in inspect(engine).get_table_names()

        gateway.uninstall(1, last_instance=True)
        tables = inspect(engine).get_table_names()
        assert "stripe_plus_meta" not in tables
        assert "gateway_logs" not in tables
        engine.dispose()


class TestCreditCards:
    """End-to-end tests for stored credit cards."""

    def test_store_cc_with_token(
        self,
        gateway: StripePlusGateway,
        db_engine: Engine,
        contact: dict,
        stripe_customer: dict,
        stripe_card: dict,
    ) -> None:
        """Test that a merchant token is sent as exactly {source: token}."""
        card_info = {"merchant_token": "tok_visa", "card_number": "4242424242424242"}

        with patch.object(
            stripe.Customer, "create", return_value=stripe_customer
        ), patch.object(
            stripe.Customer, "create_source", return_value=stripe_card
        ) as create_source:
            account = gateway.store_cc(card_info, contact)

        create_source.assert_called_once_with(
            "cus_test123", api_key="sk_test_fake_key", source="tok_visa"
        )
        assert account == {
            "client_reference_id": "cus_test123",
            "reference_id": "card_test123",
            "last4": "4242",
            "type": "visa",
            "expiration": "202712",
        }
        assert gateway.errors() == {}
        assert stored_mappings(db_engine) == {7: "cus_test123"}

    def test_store_cc_persists_masked_logs(
        self,
        gateway: StripePlusGateway,
        db_engine: Engine,
        contact: dict,
        card_info: dict,
        stripe_customer: dict,
        stripe_card: dict,
    ) -> None:
        with patch.object(
            stripe.Customer, "create", return_value=stripe_customer
        ), patch.object(stripe.Customer, "create_source", return_value=stripe_card):
            gateway.store_cc(card_info, contact)

        rows = stored_logs(db_engine)
        assert [row.direction for row in rows] == ["input", "output", "input", "output"]
        assert rows[0].url.endswith("/customers")
        assert rows[2].url.endswith("/customers/cus_test123/sources")
        assert all("4242424242424242" not in row.data for row in rows)
        assert json.loads(rows[2].data)["source"]["cvc"] == "xxx"

    def test_store_cc_reuses_customer(
        self,
        gateway: StripePlusGateway,
        contact: dict,
        stripe_customer: dict,
        stripe_card: dict,
    ) -> None:
        with patch.object(
            stripe.Customer, "create", return_value=stripe_customer
        ) as create, patch.object(
            stripe.Customer, "retrieve", return_value=stripe_customer
        ), patch.object(stripe.Customer, "create_source", return_value=stripe_card):
            gateway.store_cc({"merchant_token": "tok_visa"}, contact)
            gateway.store_cc({"merchant_token": "tok_mastercard"}, contact)

        assert create.call_count == 1

    def test_store_cc_deleted_customer(
        self,
        gateway: StripePlusGateway,
        db_engine: Engine,
        contact: dict,
    ) -> None:
        with Session(db_engine) as session:
            session.add(CustomerMapping(contact_id=7, stripe_id="cus_test123"))
            session.commit()
        create_source = MagicMock()

        with patch.object(
            stripe.Customer,
            "retrieve",
            return_value={"id": "cus_test123", "deleted": True},
        ), patch.object(stripe.Customer, "create_source", create_source):
            assert gateway.store_cc({"merchant_token": "tok_visa"}, contact) is None

        create_source.assert_not_called()
        assert gateway.errors() == {
            "invalid_request_error": {"customer": messages.CUSTOMER_DELETED}
        }
        assert stored_mappings(db_engine) == {7: "cus_test123"}

    def test_store_cc_mapping_failure(
        self,
        gateway: StripePlusGateway,
        db_engine: Engine,
        contact: dict,
        stripe_customer: dict,
    ) -> None:
        """Test that a customer already mapped to another contact fails without raising."""
        with Session(db_engine) as session:
            session.add(CustomerMapping(contact_id=8, stripe_id="cus_test123"))
            session.commit()
        create_source = MagicMock()

        with patch.object(
            stripe.Customer, "create", return_value=stripe_customer
        ), patch.object(stripe.Customer, "create_source", create_source):
            assert gateway.store_cc({"merchant_token": "tok_visa"}, contact) is None

        create_source.assert_not_called()
        errors = gateway.errors()
        assert list(errors) == ["db"]
        assert list(errors["db"]) == ["create"]
        assert stored_mappings(db_engine) == {8: "cus_test123"}
        assert len(stored_logs(db_engine)) == 4

    def test_store_cc_with_sdk_objects(
        self,
        gateway: StripePlusGateway,
        db_engine: Engine,
        contact: dict,
        card_info: dict,
        stripe_customer: dict,
        stripe_card: dict,
    ) -> None:
        """Test the store flow with real SDK objects as responses."""
        customer = stripe.Customer.construct_from(stripe_customer, "sk_test_fake_key")
        card = stripe.Card.construct_from(stripe_card, "sk_test_fake_key")

        with patch.object(
            stripe.Customer, "create", return_value=customer
        ), patch.object(stripe.Customer, "create_source", return_value=card):
            account = gateway.store_cc(card_info, contact)

        assert account == {
            "client_reference_id": "cus_test123",
            "reference_id": "card_test123",
            "last4": "4242",
            "type": "visa",
            "expiration": "202712",
        }
        assert gateway.errors() == {}
        assert stored_mappings(db_engine) == {7: "cus_test123"}

        rows = stored_logs(db_engine)
        card_output = json.loads(rows[3].data)
        assert card_output["id"] == "card_test123"
        assert card_output["exp_month"] == "xx"
        assert card_output["exp_year"] == "xxxx"

    def test_charge_and_refund_with_sdk_objects(self, gateway: StripePlusGateway) -> None:
        charge = stripe.Charge.construct_from(
            {"id": "ch_test123", "object": "charge", "balance_transaction": "txn_test123"},
            "sk_test_fake_key",
        )
        refund = stripe.Refund.construct_from(
            {"id": "re_test123", "object": "refund", "charge": "ch_test123"},
            "sk_test_fake_key",
        )

        with patch.object(stripe.Charge, "create", return_value=charge), patch.object(
            stripe.Refund, "create", return_value=refund
        ):
            charged = gateway.process_stored_cc("cus_test123", "card_test123", 25)
            refunded = gateway.refund_stored_cc(
                "cus_test123", "card_test123", None, "ch_test123", 5
            )

        assert charged["status"] == "approved"
        assert charged["transaction_id"] == "ch_test123"
        assert charged["reference_id"] == "txn_test123"
        assert refunded == {
            "status": "refunded",
            "reference_id": None,
            "transaction_id": "re_test123",
            "message": None,
        }

    def test_update_cc(
        self,
        gateway: StripePlusGateway,
        contact: dict,
        stripe_customer: dict,
        stripe_card: dict,
    ) -> None:
        updated = {**stripe_card, "exp_month": 6, "exp_year": 2031}

        with patch.object(
            stripe.Customer, "create", return_value=stripe_customer
        ), patch.object(
            stripe.Customer, "retrieve_source", return_value=stripe_card
        ), patch.object(stripe.Customer, "modify_source", return_value=updated):
            account = gateway.update_cc(
                {"card_exp": "203106"}, contact, "cus_test123", "card_test123"
            )

        assert account is not None
        assert account["expiration"] == "203106"

    def test_remove_cc(
        self, gateway: StripePlusGateway, stripe_customer: dict, stripe_card: dict
    ) -> None:
        with patch.object(
            stripe.Customer, "retrieve", return_value=stripe_customer
        ), patch.object(
            stripe.Customer, "retrieve_source", return_value=stripe_card
        ), patch.object(
            stripe.Customer, "delete_source", return_value={"id": "card_test123", "deleted": True}
        ):
            result = gateway.remove_cc("cus_test123", "card_test123")

        assert result == {"client_reference_id": "cus_test123", "reference_id": "card_test123"}

    def test_process_stored_cc(self, gateway: StripePlusGateway) -> None:
        """Test charging 25.00 USD against invoice INV-42."""
        charge = {"id": "ch_test123", "balance_transaction": "txn_test123"}

        with patch.object(stripe.Charge, "create", return_value=charge) as create:
            result = gateway.process_stored_cc(
                "cus_test123",
                "card_test123",
                25.00,
                [{"id": 42, "amount": 25.00}],
            )

        assert create.call_args.kwargs["amount"] == 2500
        assert create.call_args.kwargs["currency"] == "usd"
        assert create.call_args.kwargs["statement_descriptor"] == "Invoice INV-42"
        assert result == {
            "status": "approved",
            "reference_id": "txn_test123",
            "transaction_id": "ch_test123",
            "message": None,
        }

    def test_process_stored_cc_declined(self, gateway: StripePlusGateway, stripe_error) -> None:
        exc = stripe_error(
            stripe.CardError,
            "card_error",
            "Your card was declined.",
            402,
            code="card_declined",
            charge="ch_declined",
        )

        with patch.object(stripe.Charge, "create", side_effect=exc):
            result = gateway.process_stored_cc("cus_test123", "card_test123", 5)

        assert result["status"] == "declined"
        assert result["transaction_id"] == "ch_declined"
        assert gateway.errors() == {}

    def test_void_and_refund(self, gateway: StripePlusGateway) -> None:
        with patch.object(stripe.Refund, "create", return_value={"id": "re_test123"}) as create:
            void = gateway.void_stored_cc("cus_test123", "card_test123", None, "ch_test123")
            refund = gateway.refund_stored_cc(
                "cus_test123", "card_test123", None, "ch_test123", 12.34
            )

        assert void["status"] == "void"
        assert refund["status"] == "refunded"
        assert create.call_args_list[0].kwargs == {
            "api_key": "sk_test_fake_key",
            "charge": "ch_test123",
        }
        assert create.call_args_list[1].kwargs["amount"] == 1234

    @pytest.mark.parametrize(
        ("operation", "args"),
        [
            ("authorize_stored_cc", ("cus_test123", "card_test123", 10)),
            ("capture_stored_cc", ("cus_test123", "card_test123", "txn_1", "ch_1", 10)),
        ],
    )
    def test_unsupported_operations(
        self, gateway: StripePlusGateway, operation: str, args: tuple[Any, ...]
    ) -> None:
        charge_create = MagicMock()

        with patch.object(stripe.Charge, "create", charge_create):
            assert getattr(gateway, operation)(*args) is None

        charge_create.assert_not_called()
        assert gateway.errors() == {"unsupported": {"message": messages.UNSUPPORTED}}


class TestAch:
    """End-to-end tests for stored bank accounts."""

    def test_store_ach_uses_gateway_currency(
        self,
        gateway: StripePlusGateway,
        contact: dict,
        ach_info: dict,
        stripe_customer: dict,
    ) -> None:
        bank_account = {
            "id": "ba_test123",
            "object": "bank_account",
            "last4": "6789",
            "account_holder_name": "Ada Lovelace",
        }
        gateway.set_currency("CAD")

        with patch.object(
            stripe.Customer, "create", return_value=stripe_customer
        ), patch.object(
            stripe.Customer, "create_source", return_value=bank_account
        ) as create_source:
            account = gateway.store_ach(ach_info, contact)

        source = create_source.call_args.kwargs["source"]
        assert source["currency"] == "cad"
        assert source["account_holder_type"] == "company"
        assert account is not None
        assert account["reference_id"] == "ba_test123"
        assert account["expiration"] is None

    def test_update_ach_unsupported(
        self, gateway: StripePlusGateway, contact: dict, ach_info: dict
    ) -> None:
        assert gateway.update_ach(ach_info, contact, "cus_test123", "ba_test123") is None
        assert gateway.errors() == {"unsupported": {"message": messages.UNSUPPORTED}}

    def test_errors_cleared_between_operations(
        self, gateway: StripePlusGateway, contact: dict, ach_info: dict
    ) -> None:
        gateway.update_ach(ach_info, contact, "cus_test123", "ba_test123")

        with patch.object(stripe.Refund, "create", return_value={"id": "re_test123"}):
            result = gateway.void_stored_ach("cus_test123", "ba_test123", None, "ch_test123")

        assert result["status"] == "void"
        assert gateway.errors() == {}

    def test_process_and_refund_ach(self, gateway: StripePlusGateway) -> None:
        gateway.set_currency("JPY")

        with patch.object(
            stripe.Charge, "create", return_value={"id": "py_test123", "balance_transaction": "txn_1"}
        ) as charge_create, patch.object(
            stripe.Refund, "create", return_value={"id": "re_test123"}
        ):
            charge = gateway.process_stored_ach("cus_test123", "ba_test123", 1500)
            refund = gateway.refund_stored_ach("cus_test123", "ba_test123", None, "py_test123", 500)

        assert charge_create.call_args.kwargs["amount"] == 1500
        assert charge_create.call_args.kwargs["statement_descriptor"] == "Payment Credit"
        assert charge["status"] == "approved"
        assert refund["status"] == "refunded"

    def test_remove_ach_failure(self, gateway: StripePlusGateway, stripe_error) -> None:
        exc = stripe_error(stripe.APIError, "api_error", "Something went wrong", 500)

        with patch.object(stripe.Customer, "retrieve", side_effect=exc):
            result = gateway.remove_ach("cus_test123", "ba_test123")

        assert result == {"client_reference_id": "cus_test123", "reference_id": "ba_test123"}
        assert gateway.errors() == {}
