"""
Tests for ReconciliationService.

Drives every operation through the public API against a real session:
statement setup, smart and manual matching, cleared flags, fee / interest
adjustments, recompute, finalize, listing, and the failure contract
(typed result, rollback, nothing written).
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from finance_kernel.exceptions import AdjustmentCashLineMissingError
from finance_kernel.models.activity_log import ActivityLog
from finance_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine, LineSide
from finance_modules.cash.adjustments import AdjustmentPoster
from finance_modules.cash.config import CashConfig
from finance_modules.cash.models import (
    MatchAction,
    ReconciliationFilter,
    ReconciliationStatus,
    StatementLineInput,
)
from finance_modules.cash.orm import (
    BankStatementLineModel,
    ReconciliationMatchModel,
    ReconciliationModel,
)
from finance_modules.cash.service import ReconciliationService
from finance_services.access import ActorContext


def _match_count(session, reconciliation_id) -> int:
    return session.execute(
        select(func.count()).select_from(ReconciliationMatchModel).where(
            ReconciliationMatchModel.reconciliation_id == reconciliation_id
        )
    ).scalar_one()


def _line(session, line_id) -> BankStatementLineModel:
    return session.get(BankStatementLineModel, line_id)


def _recon(session, reconciliation_id) -> ReconciliationModel:
    return session.get(ReconciliationModel, reconciliation_id)


# =============================================================================
# Statements
# =============================================================================


class TestStatements:

    def test_list_bank_accounts(self, service, actor, bank_account):
        result = service.list_bank_accounts(actor)

        assert result.success
        assert [a.code for a in result.data] == ["OPER"]
        assert result.data[0].gl_account_id == bank_account.gl_account_id

    def test_create_statement(self, service, actor, bank_account):
        result = service.create_statement(
            actor, bank_account.id, "2024-02-01", date(2024, 2, 29), "1000", 1234.5
        )

        assert result.success, result.error
        assert result.data.start_date == date(2024, 2, 1)
        assert result.data.ending_balance == Decimal("1234.50")
        assert result.data.imported_by_id == actor.actor_id

    def test_create_statement_rejects_inverted_period(self, service, actor, bank_account):
        result = service.create_statement(
            actor, bank_account.id, date(2024, 2, 29), date(2024, 2, 1), "0", "0"
        )

        assert result.category == "invalid"
        assert result.details["field"] == "start_date"

    def test_create_statement_unknown_bank_account(self, service, actor, bank_account):
        result = service.create_statement(actor, uuid4(), date(2024, 2, 1), date(2024, 2, 29), "0", "0")

        assert result.error_code == "BANK_ACCOUNT_NOT_FOUND"
        assert result.category == "not_found"

    def test_import_lines_and_skip_duplicates(self, service, actor, session, create_statement):
        statement = create_statement()
        rows = [
            {"date": "2024-01-05", "amount": "10.00", "description": "Deposit"},
            StatementLineInput(line_date=date(2024, 1, 6), amount=Decimal("-4.00"), reference="CHK 1"),
        ]

        first = service.import_statement_lines(actor, statement.id, rows)
        again = service.import_statement_lines(
            actor, statement.id,
            [{"date": "2024-01-05", "amount": "10.004", "description": "DEPOSIT"}],
        )

        assert first.data == 2
        assert again.data == 0
        lines = session.execute(
            select(BankStatementLineModel)
            .where(BankStatementLineModel.statement_id == statement.id)
            .order_by(BankStatementLineModel.line_seq)
        ).scalars().all()
        assert [(line.line_seq, line.amount) for line in lines] == [
            (1, Decimal("10.00")),
            (2, Decimal("-4.00")),
        ]
        assert all(not line.cleared for line in lines)

    def test_import_continues_line_seq(self, service, actor, create_statement, add_line):
        statement = create_statement()
        add_line(statement, date(2024, 1, 3), "5.00")

        service.import_statement_lines(actor, statement.id, [{"line_date": date(2024, 1, 4), "amount": 1}])

        detail_lines = sorted(statement.lines, key=lambda line: line.line_seq)
        assert [line.line_seq for line in detail_lines] == [1, 2]

    def test_import_rejects_unknown_fields(self, service, actor, create_statement):
        statement = create_statement()

        result = service.import_statement_lines(
            actor, statement.id, [{"date": "2024-01-05", "amount": "1.00", "memo": "x"}]
        )

        assert result.category == "invalid"
        assert "memo" in result.error

    def test_import_rejects_empty_rows(self, service, actor, create_statement):
        result = service.import_statement_lines(actor, create_statement().id, [])

        assert result.category == "invalid"
        assert result.error == "No statement rows provided"

    def test_import_rejects_bad_amount(self, service, actor, create_statement):
        result = service.import_statement_lines(
            actor, create_statement().id, [{"date": "2024-01-05", "amount": "ten"}]
        )

        assert result.category == "invalid"

    def test_import_recomputes_draft_reconciliation(
        self, service, actor, create_statement, start_reconciliation
    ):
        statement = create_statement(ending_balance="1000.00")
        recon = start_reconciliation(statement)
        assert recon.difference == Decimal("1000.00")

        service.import_statement_lines(actor, statement.id, [{"date": "2024-01-20", "amount": "-200.00"}])

        snapshot = service.get_reconciliation_detail(actor, recon.id).data.reconciliation
        assert snapshot.difference == Decimal("800.00")


# =============================================================================
# Create / recompute
# =============================================================================


class TestCreateReconciliation:

    def test_deposit_in_transit_difference(
        self, service, actor, post_cash, create_statement, add_line, start_reconciliation
    ):
        post_cash("950.00", date(2024, 1, 5))
        statement = create_statement(ending_balance="1000.00")
        add_line(statement, date(2024, 1, 20), "50.00", description="Deposit")

        recon = start_reconciliation(statement)

        assert recon.status == ReconciliationStatus.DRAFT
        assert recon.ending_balance_per_bank == Decimal("1000.00")
        assert recon.ending_balance_per_books == Decimal("950.00")
        assert recon.difference == Decimal("100.00")

    def test_books_balance_as_of_statement_end(
        self, service, actor, post_cash, create_statement, start_reconciliation
    ):
        post_cash("400.00", date(2024, 1, 31))
        post_cash("99.00", date(2024, 2, 1))

        recon = start_reconciliation(create_statement(ending_balance="400.00"))

        assert recon.ending_balance_per_books == Decimal("400.00")
        assert recon.difference == Decimal("0.00")

    def test_duplicate_reconciliation_rejected(self, service, actor, session, create_statement, start_reconciliation):
        statement = create_statement()
        first = start_reconciliation(statement)

        result = service.create_reconciliation(actor, statement.id)

        assert not result.success
        assert result.error_code == "RECONCILIATION_EXISTS"
        assert result.category == "conflict"
        assert result.details["reconciliation_id"] == str(first.id)
        count = session.execute(
            select(func.count()).select_from(ReconciliationModel).where(
                ReconciliationModel.statement_id == statement.id
            )
        ).scalar_one()
        assert count == 1

    def test_unknown_statement(self, service, actor, bank_account):
        result = service.create_reconciliation(actor, uuid4())

        assert result.error_code == "STATEMENT_NOT_FOUND"

    def test_creation_recorded_in_activity_log(self, service, actor, session, create_statement, start_reconciliation):
        recon = start_reconciliation(create_statement())

        rows = session.execute(
            select(ActivityLog).where(ActivityLog.entity_id == recon.id)
        ).scalars().all()
        assert [(r.entity, r.action) for r in rows] == [("bank_reconciliation", "create")]
        assert rows[0].actor_id == actor.actor_id
        assert rows[0].diff["after"]["status"] == "draft"

    def test_recalc_is_idempotent(
        self, service, actor, post_cash, create_statement, add_line, start_reconciliation
    ):
        post_cash("950.00", date(2024, 1, 5))
        statement = create_statement(ending_balance="1000.00")
        add_line(statement, date(2024, 1, 20), "50.00")
        add_line(statement, date(2024, 1, 22), "-30.00")
        recon = start_reconciliation(statement)

        first = service.recalc_reconciliation(actor, recon.id)
        second = service.recalc_reconciliation(actor, recon.id)

        assert first.success and second.success
        assert first.data == second.data
        assert first.data.deposits_in_transit == Decimal("50.00")
        assert first.data.outstanding_checks == Decimal("-30.00")
        assert first.data.difference == Decimal("70.00")

    def test_recalc_picks_up_new_postings(
        self, service, actor, post_cash, create_statement, start_reconciliation
    ):
        recon = start_reconciliation(create_statement(ending_balance="250.00"))
        post_cash("250.00", date(2024, 1, 15))

        result = service.recalc_reconciliation(actor, recon.id)

        assert result.data.ending_balance_per_books == Decimal("250.00")
        assert result.data.difference == Decimal("0.00")


# =============================================================================
# Smart match
# =============================================================================


class TestSmartMatch:

    def test_vendor_payment_matched(
        self, service, actor, session, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("150.00", date(2024, 1, 10))
        statement = create_statement()
        line = add_line(statement, date(2024, 1, 11), "-150.00", description="Check 1001")
        recon = start_reconciliation(statement)

        result = service.smart_match(actor, recon.id)

        assert result.success
        assert result.data == 1
        stored = _line(session, line.id)
        assert stored.cleared is True
        assert stored.matched_ledger_id == payment.id
        match = session.execute(
            select(ReconciliationMatchModel).where(
                ReconciliationMatchModel.reconciliation_id == recon.id
            )
        ).scalar_one()
        assert match.ledger_entry_type == "ap_payment"
        assert match.auto_matched is True
        assert match.matched_by_id == actor.actor_id

    def test_customer_payment_and_journal_line_matched(
        self, service, actor, session, customer_payment, post_cash, create_statement, add_line, start_reconciliation
    ):
        receipt = customer_payment("300.00", date(2024, 1, 8))
        cash_line = post_cash("-75.25", date(2024, 1, 15), memo="Wire out")
        statement = create_statement()
        deposit = add_line(statement, date(2024, 1, 9), "300.00")
        wire = add_line(statement, date(2024, 1, 16), "-75.25")
        recon = start_reconciliation(statement)

        assert service.smart_match(actor, recon.id).data == 2
        assert _line(session, deposit.id).matched_ledger_id == receipt.id
        assert _line(session, wire.id).matched_ledger_id == cash_line.id

    def test_outside_tolerance_not_matched(
        self, service, actor, session, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        vendor_payment("150.00", date(2024, 1, 10))
        statement = create_statement()
        add_line(statement, date(2024, 1, 14), "-150.00")  # four days
        add_line(statement, date(2024, 1, 10), "-150.02")  # two cents
        recon = start_reconciliation(statement)

        assert service.smart_match(actor, recon.id).data == 0
        assert _match_count(session, recon.id) == 0

    def test_one_candidate_one_line(
        self, service, actor, session, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        vendor_payment("80.00", date(2024, 1, 10))
        statement = create_statement()
        first = add_line(statement, date(2024, 1, 9), "-80.00")
        second = add_line(statement, date(2024, 1, 10), "-80.00")
        recon = start_reconciliation(statement)

        assert service.smart_match(actor, recon.id).data == 1
        assert _line(session, first.id).cleared is True
        assert _line(session, second.id).cleared is False

    def test_rerun_matches_nothing_new(
        self, service, actor, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        vendor_payment("150.00", date(2024, 1, 10))
        statement = create_statement()
        add_line(statement, date(2024, 1, 11), "-150.00")
        recon = start_reconciliation(statement)

        assert service.smart_match(actor, recon.id).data == 1
        assert service.smart_match(actor, recon.id).data == 0

    def test_difference_recomputed_after_match(
        self, service, actor, post_cash, create_statement, add_line, start_reconciliation
    ):
        post_cash("1000.00", date(2024, 1, 2))
        statement = create_statement(ending_balance="1000.00")
        add_line(statement, date(2024, 1, 2), "1000.00")
        recon = start_reconciliation(statement)
        assert recon.difference == Decimal("1000.00")

        service.smart_match(actor, recon.id)

        detail = service.get_reconciliation_detail(actor, recon.id).data
        assert detail.reconciliation.difference == Decimal("0.00")
        assert detail.outstanding.uncleared_count == 0

    def test_operation_logs_carry_context(
        self, service, actor, create_statement, start_reconciliation, captured_logs
    ):
        recon = start_reconciliation(create_statement())

        service.smart_match(actor, recon.id)

        completed = [r for r in captured_logs() if r["message"] == "smart_match_completed"]
        assert len(completed) == 1
        assert completed[0]["reconciliation_id"] == str(recon.id)
        assert completed[0]["actor_id"] == str(actor.actor_id)
        assert completed[0]["producer"] == "cash.reconciliation"


# =============================================================================
# Manual match
# =============================================================================


class TestManualMatch:

    def test_match_and_unmatch(
        self, service, actor, session, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("150.00", date(2024, 1, 25))
        statement = create_statement(ending_balance="0.00")
        line = add_line(statement, date(2024, 1, 11), "-150.00")
        recon = start_reconciliation(statement)

        matched = service.manual_match(actor, recon.id, line.id, payment.id, "ap_payment")

        assert matched.success, matched.error
        assert matched.data.difference == Decimal("0.00")
        stored = _line(session, line.id)
        assert stored.cleared is True
        assert stored.matched_ledger_id == payment.id
        match = session.execute(
            select(ReconciliationMatchModel).where(
                ReconciliationMatchModel.reconciliation_id == recon.id
            )
        ).scalar_one()
        assert match.auto_matched is False

        unmatched = service.manual_match(
            actor, recon.id, line.id, payment.id, "ap_payment", action=MatchAction.UNMATCH
        )

        assert unmatched.success
        assert unmatched.data.difference == Decimal("-150.00")
        assert _match_count(session, recon.id) == 0
        stored = _line(session, line.id)
        assert stored.cleared is False
        assert stored.matched_ledger_id is None

    def test_unmatch_then_smart_match_again(
        self, service, actor, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("150.00", date(2024, 1, 10))
        statement = create_statement()
        line = add_line(statement, date(2024, 1, 11), "-150.00")
        recon = start_reconciliation(statement)
        service.smart_match(actor, recon.id)

        service.manual_match(actor, recon.id, line.id, payment.id, "ap_payment", action="unmatch")

        assert service.smart_match(actor, recon.id).data == 1

    def test_unmatch_of_other_entry_leaves_match_in_place(
        self, service, actor, session, vendor_payment, customer_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("150.00", date(2024, 1, 10))
        unrelated = customer_payment("150.00", date(2024, 2, 20))
        statement = create_statement(ending_balance="0.00")
        line = add_line(statement, date(2024, 1, 11), "-150.00")
        recon = start_reconciliation(statement)
        assert service.smart_match(actor, recon.id).data == 1

        result = service.manual_match(
            actor, recon.id, line.id, unrelated.id, "ar_payment", action=MatchAction.UNMATCH
        )

        assert result.error_code == "MATCH_NOT_FOUND"
        assert result.category == "not_found"
        assert result.details["ledger_entry"] == f"ar_payment:{unrelated.id}"
        assert _match_count(session, recon.id) == 1
        stored = _line(session, line.id)
        assert stored.cleared is True
        assert stored.matched_ledger_id == payment.id
        assert _recon(session, recon.id).difference == Decimal("0.00")

        rematch = service.manual_match(actor, recon.id, line.id, unrelated.id, "ar_payment")
        assert rematch.error_code == "STATEMENT_LINE_ALREADY_MATCHED"

    def test_line_already_matched(
        self, service, actor, session, vendor_payment, customer_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("150.00", date(2024, 1, 10))
        other = customer_payment("5.00", date(2024, 1, 10))
        statement = create_statement()
        line = add_line(statement, date(2024, 1, 11), "-150.00")
        recon = start_reconciliation(statement)
        service.manual_match(actor, recon.id, line.id, payment.id, "ap_payment")

        result = service.manual_match(actor, recon.id, line.id, other.id, "ar_payment")

        assert result.error_code == "STATEMENT_LINE_ALREADY_MATCHED"
        assert result.category == "conflict"
        assert _match_count(session, recon.id) == 1
        assert _line(session, line.id).matched_ledger_id == payment.id

    def test_candidate_already_matched(
        self, service, actor, session, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("150.00", date(2024, 1, 10))
        statement = create_statement()
        first = add_line(statement, date(2024, 1, 11), "-150.00")
        second = add_line(statement, date(2024, 1, 12), "-150.00")
        recon = start_reconciliation(statement)
        service.manual_match(actor, recon.id, first.id, payment.id, "ap_payment")

        result = service.manual_match(actor, recon.id, second.id, payment.id, "ap_payment")

        assert result.error_code == "CANDIDATE_ALREADY_MATCHED"
        assert _line(session, second.id).cleared is False

    def test_line_of_another_statement(
        self, service, actor, create_statement, add_line, start_reconciliation
    ):
        recon = start_reconciliation(create_statement())
        other_statement = create_statement(start_date=date(2024, 2, 1), end_date=date(2024, 2, 29))
        foreign_line = add_line(other_statement, date(2024, 2, 3), "-10.00")

        result = service.manual_match(actor, recon.id, foreign_line.id, uuid4(), "je_line")

        assert result.error_code == "STATEMENT_LINE_NOT_FOUND"
        assert result.category == "not_found"

    def test_unknown_entry_type_rejected(
        self, service, actor, create_statement, add_line, start_reconciliation
    ):
        statement = create_statement()
        line = add_line(statement, date(2024, 1, 3), "-10.00")
        recon = start_reconciliation(statement)

        result = service.manual_match(actor, recon.id, line.id, uuid4(), "bogus")

        assert result.category == "invalid"
        assert result.details["field"] == "ledger_entry_type"

    def test_match_on_finalized_reconciliation_is_locked(
        self, service, actor, session, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("10.00", date(2024, 1, 10))
        statement = create_statement(ending_balance="0.00")
        recon = start_reconciliation(statement)
        assert service.finalize_reconciliation(actor, recon.id).success
        line = add_line(statement, date(2024, 1, 10), "-10.00")

        result = service.manual_match(actor, recon.id, line.id, payment.id, "ap_payment")

        assert result.error_code == "RECONCILIATION_LOCKED"
        assert result.category == "conflict"
        assert result.error == "Reconciliation is locked"
        assert _match_count(session, recon.id) == 0
        assert _line(session, line.id).cleared is False


# =============================================================================
# Cleared flags
# =============================================================================


class TestMarkCleared:

    def test_mark_cleared_updates_difference(
        self, service, actor, post_cash, create_statement, add_line, start_reconciliation
    ):
        post_cash("950.00", date(2024, 1, 5))
        statement = create_statement(ending_balance="1000.00")
        line = add_line(statement, date(2024, 1, 20), "50.00")
        recon = start_reconciliation(statement)

        result = service.mark_cleared(actor, line.id, True)

        assert result.success
        assert result.data.cleared is True
        detail = service.get_reconciliation_detail(actor, recon.id).data
        assert detail.reconciliation.difference == Decimal("50.00")

        service.mark_cleared(actor, line.id, False)
        detail = service.get_reconciliation_detail(actor, recon.id).data
        assert detail.reconciliation.difference == Decimal("100.00")

    def test_non_boolean_rejected(self, service, actor, create_statement, add_line):
        line = add_line(create_statement(), date(2024, 1, 20), "50.00")

        result = service.mark_cleared(actor, line.id, "yes")

        assert result.category == "invalid"

    def test_unknown_line(self, service, actor, bank_account):
        assert service.mark_cleared(actor, uuid4(), True).error_code == "STATEMENT_LINE_NOT_FOUND"

    def test_locked_after_finalize(
        self, service, actor, session, create_statement, add_line, start_reconciliation
    ):
        statement = create_statement(ending_balance="0.00")
        recon = start_reconciliation(statement)
        service.finalize_reconciliation(actor, recon.id)
        line = add_line(statement, date(2024, 1, 20), "5.00")

        result = service.mark_cleared(actor, line.id, True)

        assert result.error_code == "RECONCILIATION_LOCKED"
        assert _line(session, line.id).cleared is False


# =============================================================================
# Adjustments
# =============================================================================


class TestBankAdjustments:

    def test_fee_posts_entry_and_clears_line(
        self, service, actor, session, standard_accounts, post_cash, create_statement, add_line, start_reconciliation
    ):
        post_cash("1000.00", date(2024, 1, 2))
        statement = create_statement(ending_balance="975.00")
        add_line(statement, date(2024, 1, 2), "1000.00", description="Deposit")
        fee_line = add_line(statement, date(2024, 1, 31), "-25.00", description="Monthly service fee")
        recon = start_reconciliation(statement)
        service.smart_match(actor, recon.id)

        result = service.create_bank_adjustment(actor, recon.id, "fee", "25.00", date(2024, 1, 31))

        assert result.success, result.error
        entry = session.get(JournalEntry, result.data)
        assert entry.journal_number == "BR-2024-001"
        assert entry.status == JournalEntryStatus.POSTED.value
        assert entry.source == "bank_reconciliation"
        assert entry.source_id == recon.id
        assert entry.description == "Bank service charge adjustment"
        assert entry.is_balanced
        sides = {(line.account_id, line.side, line.amount) for line in entry.lines}
        assert sides == {
            (standard_accounts["fee"].id, LineSide.DEBIT.value, Decimal("25.00")),
            (standard_accounts["cash"].id, LineSide.CREDIT.value, Decimal("25.00")),
        }

        cash_line = next(line for line in entry.lines if line.account_id == standard_accounts["cash"].id)
        stored = _line(session, fee_line.id)
        assert stored.cleared is True
        assert stored.matched_ledger_id == cash_line.id
        assert _recon(session, recon.id).difference == Decimal("0.00")
        assert service.finalize_reconciliation(actor, recon.id).success

    def test_line_with_match_row_is_not_auto_linked(
        self, service, actor, session, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("25.00", date(2024, 1, 30))
        statement = create_statement(ending_balance="0.00")
        fee_line = add_line(statement, date(2024, 1, 31), "-25.00")
        recon = start_reconciliation(statement)
        assert service.smart_match(actor, recon.id).data == 1
        stored = _line(session, fee_line.id)
        stored.matched_ledger_id = None
        session.commit()

        result = service.create_bank_adjustment(actor, recon.id, "fee", "25.00", date(2024, 1, 31))

        assert result.success, result.error
        assert _match_count(session, recon.id) == 1
        match = session.execute(
            select(ReconciliationMatchModel).where(
                ReconciliationMatchModel.reconciliation_id == recon.id
            )
        ).scalar_one()
        assert match.ledger_entry_id == payment.id
        assert match.statement_line_id == fee_line.id

    def test_entry_without_cash_line_raises(self, standard_accounts):
        entry = JournalEntry(
            journal_number="BR-2024-009",
            lines=[JournalLine(account_id=standard_accounts["fee"].id)],
        )

        with pytest.raises(AdjustmentCashLineMissingError) as exc_info:
            AdjustmentPoster._cash_line(entry, standard_accounts["cash"].id)

        assert exc_info.value.code == "ADJUSTMENT_CASH_LINE_MISSING"
        assert exc_info.value.journal_number == "BR-2024-009"

    def test_interest_posts_debit_cash(
        self, service, actor, session, standard_accounts, post_cash, create_statement, add_line, start_reconciliation
    ):
        post_cash("1000.00", date(2024, 1, 2))
        statement = create_statement(ending_balance="1003.25")
        add_line(statement, date(2024, 1, 2), "1000.00")
        interest_line = add_line(statement, date(2024, 1, 31), "3.25", description="Interest")
        recon = start_reconciliation(statement)
        service.smart_match(actor, recon.id)

        result = service.create_bank_adjustment(
            actor, recon.id, "interest", Decimal("3.25"), "2024-01-31", memo="January interest"
        )

        entry = session.get(JournalEntry, result.data)
        debit = next(line for line in entry.lines if line.side == LineSide.DEBIT.value)
        credit = next(line for line in entry.lines if line.side == LineSide.CREDIT.value)
        assert debit.account_id == standard_accounts["cash"].id
        assert credit.account_id == standard_accounts["interest"].id
        assert entry.description == "January interest"
        assert _line(session, interest_line.id).matched_ledger_id == debit.id
        assert _recon(session, recon.id).difference == Decimal("0.00")

    def test_numbers_increase(self, service, actor, session, create_statement, start_reconciliation):
        recon = start_reconciliation(create_statement())

        first = service.create_bank_adjustment(actor, recon.id, "fee", "1.00", date(2024, 1, 31))
        second = service.create_bank_adjustment(actor, recon.id, "interest", "2.00", date(2024, 1, 31))

        numbers = [session.get(JournalEntry, r.data).journal_number for r in (first, second)]
        assert numbers == ["BR-2024-001", "BR-2024-002"]

    def test_no_matching_line_still_posts(
        self, service, actor, session, create_statement, add_line, start_reconciliation
    ):
        statement = create_statement(ending_balance="1000.00")
        line = add_line(statement, date(2024, 1, 31), "-12.00")
        recon = start_reconciliation(statement)

        result = service.create_bank_adjustment(actor, recon.id, "fee", "5.00", date(2024, 1, 31))

        assert result.success
        assert _match_count(session, recon.id) == 0
        assert _line(session, line.id).cleared is False
        # books -5.00, bank 1000.00 with -12.00 outstanding
        assert _recon(session, recon.id).difference == Decimal("993.00")

    @pytest.mark.parametrize(
        "adjustment_type, amount, memo, field",
        [
            ("fee", "0", None, "amount"),
            ("fee", "-5.00", None, "amount"),
            ("charge", "5.00", None, "type"),
            ("interest", "5.00", "x" * 501, "memo"),
        ],
    )
    def test_invalid_requests(
        self, service, actor, create_statement, start_reconciliation, adjustment_type, amount, memo, field
    ):
        recon = start_reconciliation(create_statement())

        result = service.create_bank_adjustment(
            actor, recon.id, adjustment_type, amount, date(2024, 1, 31), memo=memo
        )

        assert result.category == "invalid"
        assert result.details["field"] == field

    def test_missing_accounts_is_configuration_error(
        self, session, actor, deterministic_clock, create_statement, add_line, start_reconciliation
    ):
        statement = create_statement()
        line = add_line(statement, date(2024, 1, 31), "-25.00")
        recon = start_reconciliation(statement)
        service = ReconciliationService(
            session, config=CashConfig(fee_account_code="6999"), clock=deterministic_clock
        )

        result = service.create_bank_adjustment(actor, recon.id, "fee", "25.00", date(2024, 1, 31))

        assert result.category == "configuration"
        assert result.error == "Configure bank fee and interest accounts in chart of accounts"
        assert result.details["missing_codes"] == ["6999"]
        posted = session.execute(
            select(func.count()).select_from(JournalEntry).where(JournalEntry.source_id == recon.id)
        ).scalar_one()
        assert posted == 0
        assert _line(session, line.id).cleared is False


# =============================================================================
# Finalize
# =============================================================================


class TestFinalize:

    def test_within_tolerance_finalizes(
        self, service, actor, post_cash, deterministic_clock, create_statement, start_reconciliation
    ):
        post_cash("1000.00", date(2024, 1, 10))
        recon = start_reconciliation(create_statement(ending_balance="1000.50"))

        result = service.finalize_reconciliation(actor, recon.id)

        assert result.success, result.error
        assert result.data.status == ReconciliationStatus.FINALIZED
        assert result.data.difference == Decimal("0.50")
        assert result.data.reconciled_by_id == actor.actor_id
        assert result.data.reconciled_at == deterministic_clock.now()

    def test_above_tolerance_rejected(
        self, service, actor, session, post_cash, create_statement, start_reconciliation
    ):
        post_cash("1000.00", date(2024, 1, 10))
        recon = start_reconciliation(create_statement(ending_balance="1000.51"))

        result = service.finalize_reconciliation(actor, recon.id)

        assert result.error_code == "DIFFERENCE_NOT_ZERO"
        assert result.category == "rule_violation"
        assert result.error == "Difference must be zero before finalizing"
        assert result.details["difference"] == "0.51"
        assert _recon(session, recon.id).status == "draft"

    def test_negative_difference_uses_absolute_value(
        self, service, actor, post_cash, create_statement, start_reconciliation
    ):
        post_cash("1000.00", date(2024, 1, 10))
        recon = start_reconciliation(create_statement(ending_balance="999.49"))

        assert service.finalize_reconciliation(actor, recon.id).error_code == "DIFFERENCE_NOT_ZERO"

    def test_finalize_recomputes_first(
        self, service, actor, post_cash, create_statement, start_reconciliation
    ):
        recon = start_reconciliation(create_statement(ending_balance="300.00"))
        assert recon.difference == Decimal("300.00")
        post_cash("300.00", date(2024, 1, 20))

        assert service.finalize_reconciliation(actor, recon.id).success

    def test_finalized_reconciliation_is_read_only(
        self, service, actor, create_statement, start_reconciliation
    ):
        statement = create_statement(ending_balance="0.00")
        recon = start_reconciliation(statement)
        service.finalize_reconciliation(actor, recon.id)

        results = [
            service.finalize_reconciliation(actor, recon.id),
            service.smart_match(actor, recon.id),
            service.recalc_reconciliation(actor, recon.id),
            service.create_bank_adjustment(actor, recon.id, "fee", "1.00", date(2024, 1, 31)),
            service.import_statement_lines(actor, statement.id, [{"date": "2024-01-05", "amount": "1.00"}]),
        ]

        assert [r.error_code for r in results] == ["RECONCILIATION_LOCKED"] * 5
        detail = service.get_reconciliation_detail(actor, recon.id)
        assert detail.success
        assert detail.data.reconciliation.status == ReconciliationStatus.FINALIZED
        assert detail.data.lines == ()


# =============================================================================
# Reads
# =============================================================================


class TestListAndDetail:

    def test_list_newest_first_with_summary(
        self, service, actor, deterministic_clock, create_statement, start_reconciliation
    ):
        january = start_reconciliation(create_statement(ending_balance="0.00"))
        service.finalize_reconciliation(actor, january.id)
        deterministic_clock.advance(3600)
        february = start_reconciliation(
            create_statement(ending_balance="10.00", start_date=date(2024, 2, 1), end_date=date(2024, 2, 29))
        )

        result = service.list_reconciliations(actor)

        assert [r.id for r in result.data.items] == [february.id, january.id]
        assert result.data.summary == {"draft": 1, "finalized": 1}

    def test_list_filters(
        self, service, actor, bank_account, create_statement, start_reconciliation
    ):
        recon = start_reconciliation(create_statement(ending_balance="0.00"))
        service.finalize_reconciliation(actor, recon.id)

        by_status = service.list_reconciliations(actor, ReconciliationFilter(status="draft"))
        by_account = service.list_reconciliations(actor, ReconciliationFilter(bank_account_id=bank_account.id))
        by_other_account = service.list_reconciliations(actor, ReconciliationFilter(bank_account_id=uuid4()))
        by_day = service.list_reconciliations(
            actor, ReconciliationFilter(date_from="2024-01-31", date_to="2024-01-31")
        )
        later = service.list_reconciliations(actor, ReconciliationFilter(date_from=date(2024, 2, 1)))

        assert by_status.data.items == ()
        assert by_status.data.summary == {"draft": 0, "finalized": 0}
        assert [r.id for r in by_account.data.items] == [recon.id]
        assert by_other_account.data.items == ()
        assert [r.id for r in by_day.data.items] == [recon.id]
        assert later.data.items == ()

    def test_detail(
        self, service, actor, vendor_payment, create_statement, add_line, start_reconciliation
    ):
        payment = vendor_payment("150.00", date(2024, 1, 10))
        statement = create_statement()
        add_line(statement, date(2024, 1, 20), "50.00")
        add_line(statement, date(2024, 1, 11), "-150.00")
        recon = start_reconciliation(statement)
        service.smart_match(actor, recon.id)

        detail = service.get_reconciliation_detail(actor, recon.id).data

        assert detail.statement.id == statement.id
        assert detail.bank_account.code == "OPER"
        assert [line.amount for line in detail.lines] == [Decimal("-150.00"), Decimal("50.00")]
        assert len(detail.matches) == 1
        assert detail.matches[0].ledger_entry_id == payment.id
        assert [(c.type.value, c.amount) for c in detail.candidates] == [("ap_payment", Decimal("-150.00"))]
        assert detail.outstanding.deposits_in_transit == Decimal("50.00")

    def test_other_organization_cannot_see(self, service, create_statement, start_reconciliation):
        recon = start_reconciliation(create_statement())
        outsider = ActorContext(actor_id=uuid4(), organization_id=uuid4(), role="admin")

        result = service.get_reconciliation_detail(outsider, recon.id)

        assert result.error_code == "RECONCILIATION_NOT_FOUND"


# =============================================================================
# Authorization
# =============================================================================


class TestAuthorization:

    def test_viewer_denied_before_any_write(
        self, service, session, test_actor_id, organization_id, create_statement
    ):
        statement = create_statement()
        viewer = ActorContext(actor_id=test_actor_id, organization_id=organization_id, role="viewer")

        result = service.create_reconciliation(viewer, statement.id)

        assert not result.success
        assert result.category == "not_allowed"
        assert result.error == "Admins only"
        assert session.execute(select(func.count()).select_from(ReconciliationModel)).scalar_one() == 0

    def test_missing_role_denied(self, service, test_actor_id, organization_id, bank_account):
        anonymous = ActorContext(actor_id=test_actor_id, organization_id=organization_id, role=None)

        assert service.list_bank_accounts(anonymous).error_code == "NOT_AUTHORIZED"

    def test_admin_allowed(self, service, test_actor_id, organization_id, bank_account):
        admin = ActorContext(actor_id=test_actor_id, organization_id=organization_id, role="admin")

        assert service.list_bank_accounts(admin).success
