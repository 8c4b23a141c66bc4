"""
Shared fixtures for module tests.

Provides bank accounts, statements, statement lines, customer / vendor
payments and a wired ReconciliationService.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares which parent entities it depends on in its function signature.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from finance_modules.ap.orm import VendorPaymentModel
from finance_modules.ar.orm import CustomerPaymentModel
from finance_modules.cash.config import CashConfig
from finance_modules.cash.orm import (
    BankAccountModel,
    BankStatementLineModel,
    BankStatementModel,
)
from finance_modules.cash.service import ReconciliationService

# ---------------------------------------------------------------------------
# Deterministic parent entity IDs
# ---------------------------------------------------------------------------

TEST_VENDOR_ID = UUID("00000000-0000-4000-a000-000000000001")
TEST_CUSTOMER_ID = UUID("00000000-0000-4000-a000-000000000002")
TEST_BANK_ACCOUNT_ID = UUID("00000000-0000-4000-a000-000000000010")


@pytest.fixture
def cash_config() -> CashConfig:
    return CashConfig.with_defaults()


@pytest.fixture
def service(session, cash_config, deterministic_clock) -> ReconciliationService:
    """ReconciliationService over the test session and clock."""
    return ReconciliationService(session, config=cash_config, clock=deterministic_clock)


# ---------------------------------------------------------------------------
# Bank account and statements
# ---------------------------------------------------------------------------

@pytest.fixture
def bank_account(session, standard_accounts, organization_id, test_actor_id) -> BankAccountModel:
    """Operating bank account linked to GL cash account 1000."""
    account = BankAccountModel(
        id=TEST_BANK_ACCOUNT_ID,
        organization_id=organization_id,
        code="OPER",
        name="Operating Account",
        gl_account_id=standard_accounts["cash"].id,
        currency="USD",
        institution="First Test Bank",
        account_number_masked="4321",
        is_active=True,
        created_by_id=test_actor_id,
    )
    session.add(account)
    session.commit()
    return account


@pytest.fixture
def create_statement(session, bank_account, test_actor_id):
    """Factory for January 2024 statements (balances overridable)."""

    def _create(
        ending_balance="1000.00",
        starting_balance="0.00",
        start_date: date = date(2024, 1, 1),
        end_date: date = date(2024, 1, 31),
        account: BankAccountModel | None = None,
    ) -> BankStatementModel:
        statement = BankStatementModel(
            id=uuid4(),
            bank_account_id=(account or bank_account).id,
            start_date=start_date,
            end_date=end_date,
            starting_balance=Decimal(str(starting_balance)),
            ending_balance=Decimal(str(ending_balance)),
            imported_by_id=test_actor_id,
            created_by_id=test_actor_id,
        )
        session.add(statement)
        session.commit()
        return statement

    return _create


@pytest.fixture
def add_line(session, test_actor_id):
    """Factory for statement lines; ``line_seq`` follows call order."""
    counter = {"seq": 0}

    def _add(
        statement: BankStatementModel,
        line_date: date,
        amount,
        description: str | None = None,
        reference: str | None = None,
        cleared: bool = False,
    ) -> BankStatementLineModel:
        counter["seq"] += 1
        line = BankStatementLineModel(
            id=uuid4(),
            statement_id=statement.id,
            line_date=line_date,
            amount=Decimal(str(amount)),
            description=description,
            reference=reference,
            cleared=cleared,
            line_seq=counter["seq"],
            created_by_id=test_actor_id,
        )
        session.add(line)
        session.commit()
        return line

    return _add


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

@pytest.fixture
def customer_payment(session, organization_id, test_actor_id):
    """Factory for AR customer payments (positive amounts)."""

    def _create(amount, payment_date: date, reference: str | None = None) -> CustomerPaymentModel:
        payment = CustomerPaymentModel(
            id=uuid4(),
            organization_id=organization_id,
            customer_id=TEST_CUSTOMER_ID,
            payment_date=payment_date,
            amount=Decimal(str(amount)),
            currency="USD",
            method="ach",
            reference=reference,
            created_by_id=test_actor_id,
        )
        session.add(payment)
        session.commit()
        return payment

    return _create


@pytest.fixture
def vendor_payment(session, organization_id, test_actor_id):
    """Factory for AP vendor payments (stored positive, matched negated)."""

    def _create(amount, payment_date: date, reference: str | None = None) -> VendorPaymentModel:
        payment = VendorPaymentModel(
            id=uuid4(),
            organization_id=organization_id,
            vendor_id=TEST_VENDOR_ID,
            payment_date=payment_date,
            amount=Decimal(str(amount)),
            currency="USD",
            method="check",
            reference=reference,
            created_by_id=test_actor_id,
        )
        session.add(payment)
        session.commit()
        return payment

    return _create


@pytest.fixture
def start_reconciliation(service, actor, create_statement):
    """A draft reconciliation over a fresh statement (bank 1000.00)."""

    def _create(statement=None, ending_balance="1000.00"):
        statement = statement or create_statement(ending_balance=ending_balance)
        result = service.create_reconciliation(actor, statement.id)
        assert result.success, result.error
        return result.data

    return _create
