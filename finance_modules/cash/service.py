"""
finance_modules.cash.service
============================

Responsibility:
    Entry points for bank reconciliation.  Each public method is one unit of
    work: authorize, load and lock, validate guards, write, recompute the
    reconciliation's balances, append the activity trail, commit.  Matching
    decisions come from ``finance_engines.matching``; arithmetic from
    ``finance_engines.reconciliation``; journal posting from the kernel.

Architecture:
    Module layer (finance_modules).  Owns the transaction boundary: every
    public method commits on success and rolls back on failure.  Kernel
    services and module collaborators (``ReconciliationSession``,
    ``AdjustmentPoster``, ``StatementBook``) only flush.

Invariants enforced:
    - The actor's role is checked before anything is read.
    - Every query is scoped to the actor's organization.
    - Mutations of a reconciliation take a row lock on it first
      (``SELECT ... FOR UPDATE``), serializing concurrent operations.
    - Matches, clear flags, adjustments and recalculation require a draft
      reconciliation.  Finalize is one way.
    - A statement line has at most one match; a ledger candidate is the
      target of at most one match per reconciliation.
    - The line's ``cleared`` flag and ``matched_ledger_id`` follow its match.

Failure modes:
    - Nothing raises out of a public method.  ``FinanceKernelError``
      subclasses become ``OperationResult`` failures carrying their code and
      category; anything else is logged with traceback and returned as
      ``INTERNAL_ERROR``.  The session is rolled back in both cases.

Audit relevance:
    Every operation logs ``<operation>_started`` / ``_completed`` /
    ``_failed`` with the actor, organization and reconciliation bound into
    ``LogContext``, and every mutation appends an ``ActivityLog`` row.

Usage::

    service = ReconciliationService(session, config=CashConfig(), clock=clock)
    actor = ActorContext(actor_id=user_id, organization_id=org_id, role="finance")
    result = service.create_reconciliation(actor, statement_id)
    if result.success:
        service.smart_match(actor, result.data.id)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from finance_engines.matching import MatchableLine, MatchingEngine
from finance_engines.reconciliation.outstanding import within_tolerance
from finance_kernel.db.types import round_money
from finance_kernel.domain.clock import Clock, SystemClock
from finance_kernel.exceptions import (
    BankAccountNotFoundError,
    CandidateAlreadyMatchedError,
    DifferenceNotZeroError,
    FinanceKernelError,
    MatchNotFoundError,
    ReconciliationExistsError,
    ReconciliationLockedError,
    ReconciliationNotFoundError,
    StatementLineAlreadyMatchedError,
    StatementLineNotFoundError,
    StatementNotFoundError,
    ValidationError,
)
from finance_kernel.logging_config import LogContext, get_logger
from finance_kernel.models.activity_log import ActivityAction
from finance_kernel.services.activity_logger import ActivityLogger
from finance_modules.cash.adjustments import AdjustmentPoster
from finance_modules.cash.candidates import LedgerCandidateAggregator
from finance_modules.cash.config import CashConfig
from finance_modules.cash.models import (
    BalanceSnapshot,
    BankAccount,
    BankAdjustmentRequest,
    BankStatement,
    BankStatementLine,
    CandidateKey,
    ManualMatchRequest,
    MatchAction,
    Reconciliation,
    ReconciliationDetail,
    ReconciliationFilter,
    ReconciliationList,
    ReconciliationStatus,
    StatementLineInput,
    parse_amount,
    parse_date,
    parse_uuid,
)
from finance_modules.cash.orm import (
    BankAccountModel,
    BankStatementLineModel,
    BankStatementModel,
    ReconciliationMatchModel,
    ReconciliationModel,
)
from finance_modules.cash.session import ReconciliationSession
from finance_modules.cash.statements import StatementBook
from finance_modules.cash.workflows import (
    RECONCILIATION_WORKFLOW,
    find_transition,
    is_editable,
)
from finance_services.access import ActorContext, authorize
from finance_services.results import OperationResult

logger = get_logger("modules.cash.service")

T = TypeVar("T")

RECONCILIATION_ENTITY = "bank_reconciliation"
STATEMENT_ENTITY = "bank_statement"
STATEMENT_LINE_ENTITY = "bank_statement_line"


def _recon_state(recon: ReconciliationModel) -> dict[str, Any]:
    return {
        "status": recon.status,
        "ending_balance_per_bank": recon.ending_balance_per_bank,
        "ending_balance_per_books": recon.ending_balance_per_books,
        "difference": recon.difference,
    }


class ReconciliationService:
    """
    Bank reconciliation operations.

    Contract:
        Every public method takes the caller's ``ActorContext`` first and
        returns an ``OperationResult``.  On success the session has been
        committed; on failure it has been rolled back and nothing changed.

    Non-goals:
        - No period close, multi-currency or chart-of-accounts management.
        - No statement file parsing; rows arrive already parsed.
        - No reopen of a finalized reconciliation.
    """

    def __init__(
        self,
        session: Session,
        config: CashConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._config = config or CashConfig()
        self._clock = clock or SystemClock()

        self._recompute = ReconciliationSession(session, self._clock)
        self._candidates = LedgerCandidateAggregator(session)
        self._adjustments = AdjustmentPoster(session, self._config, self._clock)
        self._statements = StatementBook(session)
        self._activity = ActivityLogger(session, self._clock)

        # Stateless engines
        self._matching = MatchingEngine()

    # =========================================================================
    # Operation runner
    # =========================================================================

    def _execute(
        self,
        operation: str,
        actor: ActorContext,
        work: Callable[[], T],
        *,
        read_only: bool = False,
        reconciliation_id: Any = None,
        **log_fields: Any,
    ) -> OperationResult[T]:
        with LogContext.bind(
            actor_id=actor.actor_id,
            organization_id=actor.organization_id,
            reconciliation_id=reconciliation_id,
            producer="cash.reconciliation",
        ):
            logger.info(f"{operation}_started", extra=log_fields)
            try:
                authorize(actor, operation, self._config.allowed_roles)
                data = work()
                if not read_only:
                    self._session.commit()
            except FinanceKernelError as exc:
                self._session.rollback()
                logger.warning(
                    f"{operation}_failed",
                    extra={"error_code": exc.code, "category": exc.category, "error": str(exc)},
                )
                return OperationResult.from_error(exc)
            except Exception:
                self._session.rollback()
                logger.exception(f"{operation}_failed", extra={"error_code": "INTERNAL_ERROR"})
                return OperationResult.internal()

            logger.info(f"{operation}_completed")
            return OperationResult.ok(data)

    # =========================================================================
    # Loading helpers (organization-scoped)
    # =========================================================================

    def _reconciliation(
        self,
        actor: ActorContext,
        reconciliation_id: Any,
        *,
        lock: bool = True,
    ) -> ReconciliationModel:
        rid = parse_uuid(reconciliation_id, "reconciliation_id")
        query = select(ReconciliationModel).where(
            ReconciliationModel.id == rid,
            ReconciliationModel.organization_id == actor.organization_id,
        )
        if lock:
            query = query.with_for_update()
        recon = self._session.execute(query).scalar_one_or_none()
        if recon is None:
            raise ReconciliationNotFoundError(rid)
        return recon

    def _statement(
        self,
        actor: ActorContext,
        statement_id: Any,
        *,
        lock: bool = False,
    ) -> BankStatementModel:
        sid = parse_uuid(statement_id, "statement_id")
        query = (
            select(BankStatementModel)
            .join(BankAccountModel, BankStatementModel.bank_account_id == BankAccountModel.id)
            .where(
                BankStatementModel.id == sid,
                BankAccountModel.organization_id == actor.organization_id,
            )
        )
        if lock:
            query = query.with_for_update()
        statement = self._session.execute(query).scalar_one_or_none()
        if statement is None:
            raise StatementNotFoundError(sid)
        return statement

    def _bank_account(self, actor: ActorContext, bank_account_id: Any) -> BankAccountModel:
        bid = parse_uuid(bank_account_id, "bank_account_id")
        account = self._session.execute(
            select(BankAccountModel).where(
                BankAccountModel.id == bid,
                BankAccountModel.organization_id == actor.organization_id,
            )
        ).scalar_one_or_none()
        if account is None:
            raise BankAccountNotFoundError(bid)
        return account

    def _reconciliation_for_statement(
        self,
        statement_id: UUID,
        *,
        lock: bool = True,
    ) -> ReconciliationModel | None:
        query = select(ReconciliationModel).where(
            ReconciliationModel.statement_id == statement_id
        )
        if lock:
            query = query.with_for_update()
        return self._session.execute(query).scalar_one_or_none()

    def _require_editable(self, recon: ReconciliationModel) -> None:
        if not is_editable(recon.status):
            logger.warning(
                "reconciliation_locked",
                extra={"reconciliation_id": str(recon.id), "status": recon.status},
            )
            raise ReconciliationLockedError(recon.id, recon.status)

    def _statement_lines(self, statement_id: UUID) -> list[BankStatementLineModel]:
        return list(
            self._session.execute(
                select(BankStatementLineModel)
                .where(BankStatementLineModel.statement_id == statement_id)
                .order_by(BankStatementLineModel.line_date, BankStatementLineModel.line_seq)
            ).scalars()
        )

    def _matches(self, reconciliation_id: UUID) -> list[ReconciliationMatchModel]:
        return list(
            self._session.execute(
                select(ReconciliationMatchModel)
                .where(ReconciliationMatchModel.reconciliation_id == reconciliation_id)
                .order_by(ReconciliationMatchModel.created_at)
            ).scalars()
        )

    def _claimed_keys(self, reconciliation_id: UUID) -> set[CandidateKey]:
        return {
            CandidateKey.of(m.ledger_entry_type, m.ledger_entry_id)
            for m in self._matches(reconciliation_id)
        }

    def _record(
        self,
        actor: ActorContext,
        entity: str,
        entity_id: UUID,
        action: ActivityAction,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> None:
        self._activity.record(
            organization_id=actor.organization_id,
            actor_id=actor.actor_id,
            entity=entity,
            entity_id=entity_id,
            action=action,
            before=before,
            after=after,
        )

    # =========================================================================
    # Bank accounts and statements
    # =========================================================================

    def list_bank_accounts(self, actor: ActorContext) -> OperationResult[list[BankAccount]]:
        """Active bank accounts of the actor's organization, by name."""

        def work() -> list[BankAccount]:
            accounts = self._session.execute(
                select(BankAccountModel)
                .where(
                    BankAccountModel.organization_id == actor.organization_id,
                    BankAccountModel.is_active.is_(True),
                )
                .order_by(BankAccountModel.name)
            ).scalars()
            return [account.to_dto() for account in accounts]

        return self._execute("list_bank_accounts", actor, work, read_only=True)

    def create_statement(
        self,
        actor: ActorContext,
        bank_account_id: UUID,
        start_date: date,
        end_date: date,
        starting_balance: Decimal | str | int | float,
        ending_balance: Decimal | str | int | float,
    ) -> OperationResult[BankStatement]:
        """
        Create an empty statement for a bank account.

        Postconditions:
            - On success: statement persisted with balances rounded to cents.
        """

        def work() -> BankStatement:
            account = self._bank_account(actor, bank_account_id)
            statement = self._statements.create_statement(
                account,
                start_date=parse_date(start_date, "start_date"),
                end_date=parse_date(end_date, "end_date"),
                starting_balance=parse_amount(starting_balance, "starting_balance"),
                ending_balance=parse_amount(ending_balance, "ending_balance"),
                actor_id=actor.actor_id,
            )
            dto = statement.to_dto()
            self._record(
                actor, STATEMENT_ENTITY, statement.id, ActivityAction.CREATE,
                after={
                    "bank_account_id": account.id,
                    "start_date": dto.start_date,
                    "end_date": dto.end_date,
                    "ending_balance": dto.ending_balance,
                },
            )
            return dto

        return self._execute(
            "create_statement", actor, work, bank_account_id=str(bank_account_id),
        )

    def import_statement_lines(
        self,
        actor: ActorContext,
        statement_id: UUID,
        rows: Sequence[StatementLineInput | Mapping[str, Any]],
    ) -> OperationResult[int]:
        """
        Append already-parsed rows to a statement, skipping duplicates.

        Returns:
            Result whose data is the number of lines inserted.

        Guard:
            The statement's reconciliation, if one exists, must be draft.
        """

        def work() -> int:
            parsed = [self._coerce_row(row) for row in rows]
            statement = self._statement(actor, statement_id, lock=True)
            recon = self._reconciliation_for_statement(statement.id)
            if recon is not None:
                self._require_editable(recon)

            inserted = self._statements.import_lines(statement, parsed, actor.actor_id)
            if recon is not None:
                self._recompute.recompute(recon)
            self._record(
                actor, STATEMENT_ENTITY, statement.id, ActivityAction.IMPORT,
                after={"count": len(inserted)},
            )
            return len(inserted)

        return self._execute(
            "import_statement_lines", actor, work,
            statement_id=str(statement_id), row_count=len(rows),
        )

    @staticmethod
    def _coerce_row(row: StatementLineInput | Mapping[str, Any]) -> StatementLineInput:
        if isinstance(row, StatementLineInput):
            return row
        if not isinstance(row, Mapping):
            raise ValidationError("Statement rows must be mappings", field="rows")
        values = dict(row)
        if "date" in values and "line_date" not in values:
            values["line_date"] = values.pop("date")
        allowed = {"line_date", "amount", "description", "type", "reference"}
        unknown = sorted(set(values) - allowed)
        if unknown:
            raise ValidationError(
                f"Unknown statement row fields: {', '.join(unknown)}", field="rows"
            )
        if "line_date" not in values or "amount" not in values:
            raise ValidationError("Statement rows need a date and an amount", field="rows")
        return StatementLineInput(**values)

    # =========================================================================
    # Reconciliations
    # =========================================================================

    def create_reconciliation(
        self,
        actor: ActorContext,
        statement_id: UUID,
    ) -> OperationResult[Reconciliation]:
        """
        Start a draft reconciliation for a statement.

        Preconditions:
            - No reconciliation exists for the statement.
        Postconditions:
            - ending_balance_per_bank copied from the statement; books
              balance and difference seeded by a recompute.
        """

        def work() -> Reconciliation:
            statement = self._statement(actor, statement_id, lock=True)
            existing = self._reconciliation_for_statement(statement.id, lock=False)
            if existing is not None:
                raise ReconciliationExistsError(statement.id, existing.id)

            now = self._clock.now()
            recon = ReconciliationModel(
                id=uuid4(),
                organization_id=actor.organization_id,
                statement_id=statement.id,
                bank_account_id=statement.bank_account_id,
                status=RECONCILIATION_WORKFLOW.initial_state,
                ending_balance_per_bank=round_money(statement.ending_balance),
                created_at=now,
                updated_at=now,
                created_by_id=actor.actor_id,
            )
            self._session.add(recon)
            self._session.flush()
            self._recompute.recompute(recon)
            self._record(
                actor, RECONCILIATION_ENTITY, recon.id, ActivityAction.CREATE,
                after=_recon_state(recon),
            )
            logger.info(
                "reconciliation_created",
                extra={"reconciliation_id": str(recon.id), "statement_id": str(statement.id)},
            )
            return recon.to_dto()

        return self._execute(
            "create_reconciliation", actor, work, statement_id=str(statement_id),
        )

    def list_reconciliations(
        self,
        actor: ActorContext,
        filters: ReconciliationFilter | None = None,
    ) -> OperationResult[ReconciliationList]:
        """
        Reconciliations of the organization, newest first, with counts per
        status over the filtered set.
        """

        def work() -> ReconciliationList:
            f = filters or ReconciliationFilter()
            query = select(ReconciliationModel).where(
                ReconciliationModel.organization_id == actor.organization_id
            )
            if f.bank_account_id is not None:
                query = query.where(
                    ReconciliationModel.bank_account_id
                    == parse_uuid(f.bank_account_id, "bank_account_id")
                )
            if f.status is not None:
                query = query.where(ReconciliationModel.status == f.status.value)
            if f.date_from is not None:
                start = datetime.combine(f.date_from, time.min, tzinfo=timezone.utc)
                query = query.where(ReconciliationModel.created_at >= start)
            if f.date_to is not None:
                end = datetime.combine(f.date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
                query = query.where(ReconciliationModel.created_at < end)
            query = query.order_by(
                ReconciliationModel.created_at.desc(), ReconciliationModel.id
            )

            items = tuple(r.to_dto() for r in self._session.execute(query).scalars())
            summary = {status.value: 0 for status in ReconciliationStatus}
            for item in items:
                summary[item.status.value] += 1
            return ReconciliationList(items=items, summary=summary)

        return self._execute("list_reconciliations", actor, work, read_only=True)

    def get_reconciliation_detail(
        self,
        actor: ActorContext,
        reconciliation_id: UUID,
    ) -> OperationResult[ReconciliationDetail]:
        """Reconciliation with its statement lines, matches and candidates."""

        def work() -> ReconciliationDetail:
            recon = self._reconciliation(actor, reconciliation_id, lock=False)
            statement = self._session.get(BankStatementModel, recon.statement_id)
            bank_account = self._session.get(BankAccountModel, recon.bank_account_id)
            lines = self._statement_lines(statement.id)
            return ReconciliationDetail(
                reconciliation=recon.to_dto(),
                statement=statement.to_dto(),
                bank_account=bank_account.to_dto(),
                lines=tuple(line.to_dto() for line in lines),
                matches=tuple(m.to_dto() for m in self._matches(recon.id)),
                candidates=tuple(
                    self._candidates.collect(
                        recon.organization_id, bank_account.gl_account_id
                    )
                ),
                outstanding=self._recompute.outstanding(statement.id),
            )

        return self._execute(
            "get_reconciliation_detail", actor, work,
            read_only=True, reconciliation_id=reconciliation_id,
        )

    # =========================================================================
    # Matching
    # =========================================================================

    def smart_match(
        self,
        actor: ActorContext,
        reconciliation_id: UUID,
    ) -> OperationResult[int]:
        """
        Auto-match every unmatched statement line that has an eligible,
        unclaimed candidate.

        Returns:
            Result whose data is the number of matches created.  Zero when
            nothing new can be matched.
        """

        def work() -> int:
            recon = self._reconciliation(actor, reconciliation_id)
            self._require_editable(recon)
            bank_account = self._session.get(BankAccountModel, recon.bank_account_id)

            unmatched = [
                line for line in self._statement_lines(recon.statement_id)
                if line.matched_ledger_id is None
            ]
            candidates = self._candidates.collect(
                recon.organization_id, bank_account.gl_account_id
            )
            claimed = self._claimed_keys(recon.id)
            matched_line_ids = {
                m.statement_line_id for m in self._matches(recon.id)
            }
            unmatched = [line for line in unmatched if line.id not in matched_line_ids]

            plan = self._matching.plan_smart_matches(
                [
                    MatchableLine(line.id, line.line_date, round_money(line.amount))
                    for line in unmatched
                ],
                candidates,
                claimed=claimed,
                tolerance=self._config.match_tolerance,
            )

            by_id = {line.id: line for line in unmatched}
            for proposal in plan:
                line = by_id[proposal.statement_line_id]
                self._session.add(
                    ReconciliationMatchModel(
                        id=uuid4(),
                        reconciliation_id=recon.id,
                        statement_line_id=line.id,
                        ledger_entry_id=proposal.candidate.id,
                        ledger_entry_type=proposal.candidate.type.value,
                        auto_matched=True,
                        matched_by_id=actor.actor_id,
                        created_by_id=actor.actor_id,
                    )
                )
                line.cleared = True
                line.matched_ledger_id = proposal.candidate.id
                line.updated_by_id = actor.actor_id

            before = _recon_state(recon)
            self._recompute.recompute(recon)
            self._record(
                actor, RECONCILIATION_ENTITY, recon.id, ActivityAction.AUTO_MATCH,
                before=before,
                after={**_recon_state(recon), "matched": len(plan)},
            )
            logger.info(
                "smart_match_applied",
                extra={
                    "reconciliation_id": str(recon.id),
                    "lines_considered": len(unmatched),
                    "candidates": len(candidates),
                    "matched": len(plan),
                },
            )
            return len(plan)

        return self._execute(
            "smart_match", actor, work, reconciliation_id=reconciliation_id,
        )

    def manual_match(
        self,
        actor: ActorContext,
        reconciliation_id: UUID,
        statement_line_id: UUID,
        ledger_entry_id: UUID,
        ledger_entry_type: str,
        action: MatchAction | str = MatchAction.MATCH,
    ) -> OperationResult[Reconciliation]:
        """
        Match a statement line to one ledger candidate, or undo that match.

        Match guards:
            - reconciliation is draft;
            - the line belongs to the reconciliation's statement;
            - the line has no match yet;
            - the candidate is not already matched in this reconciliation.

        Unmatch deletes the match with exactly this (line, type, id) and
        resets the line's cleared flag and pointer.  No such match raises
        ``MatchNotFoundError`` and leaves the line untouched.
        """

        def work() -> Reconciliation:
            request = ManualMatchRequest(
                reconciliation_id=reconciliation_id,
                statement_line_id=statement_line_id,
                ledger_entry_id=ledger_entry_id,
                ledger_entry_type=ledger_entry_type,
                action=action,
            )
            recon = self._reconciliation(actor, request.reconciliation_id)
            self._require_editable(recon)

            line = self._session.execute(
                select(BankStatementLineModel)
                .where(BankStatementLineModel.id == request.statement_line_id)
                .with_for_update()
            ).scalar_one_or_none()
            if line is None or line.statement_id != recon.statement_id:
                raise StatementLineNotFoundError(request.statement_line_id)

            before = _recon_state(recon)
            if request.action == MatchAction.MATCH:
                self._match_line(actor, recon, line, request)
                activity = ActivityAction.MATCH
            else:
                self._unmatch_line(actor, recon, line, request)
                activity = ActivityAction.UNMATCH

            self._recompute.recompute(recon)
            self._record(
                actor, RECONCILIATION_ENTITY, recon.id, activity,
                before=before,
                after={
                    **_recon_state(recon),
                    "statement_line_id": line.id,
                    "ledger_entry": str(request.candidate_key),
                },
            )
            return recon.to_dto()

        return self._execute(
            "manual_match", actor, work,
            reconciliation_id=reconciliation_id,
            statement_line_id=str(statement_line_id),
            action=str(getattr(action, "value", action)),
        )

    def _match_line(
        self,
        actor: ActorContext,
        recon: ReconciliationModel,
        line: BankStatementLineModel,
        request: ManualMatchRequest,
    ) -> None:
        line_matched = self._session.execute(
            select(ReconciliationMatchModel.id).where(
                ReconciliationMatchModel.reconciliation_id == recon.id,
                ReconciliationMatchModel.statement_line_id == line.id,
            )
        ).first()
        if line.matched_ledger_id is not None or line_matched is not None:
            raise StatementLineAlreadyMatchedError(line.id)

        if request.candidate_key in self._claimed_keys(recon.id):
            raise CandidateAlreadyMatchedError(
                request.ledger_entry_type.value, request.ledger_entry_id
            )

        self._session.add(
            ReconciliationMatchModel(
                id=uuid4(),
                reconciliation_id=recon.id,
                statement_line_id=line.id,
                ledger_entry_id=request.ledger_entry_id,
                ledger_entry_type=request.ledger_entry_type.value,
                auto_matched=False,
                matched_by_id=actor.actor_id,
                created_by_id=actor.actor_id,
            )
        )
        line.cleared = True
        line.matched_ledger_id = request.ledger_entry_id
        line.updated_by_id = actor.actor_id
        logger.info(
            "statement_line_matched",
            extra={"statement_line_id": str(line.id), "ledger_entry": str(request.candidate_key)},
        )

    def _unmatch_line(
        self,
        actor: ActorContext,
        recon: ReconciliationModel,
        line: BankStatementLineModel,
        request: ManualMatchRequest,
    ) -> None:
        removed = self._session.execute(
            delete(ReconciliationMatchModel).where(
                ReconciliationMatchModel.reconciliation_id == recon.id,
                ReconciliationMatchModel.statement_line_id == line.id,
                ReconciliationMatchModel.ledger_entry_id == request.ledger_entry_id,
                ReconciliationMatchModel.ledger_entry_type == request.ledger_entry_type.value,
            )
        ).rowcount
        if removed == 0:
            raise MatchNotFoundError(line.id, str(request.candidate_key))
        line.cleared = False
        line.matched_ledger_id = None
        line.updated_by_id = actor.actor_id
        logger.info(
            "statement_line_unmatched",
            extra={"statement_line_id": str(line.id), "matches_removed": removed},
        )

    def mark_cleared(
        self,
        actor: ActorContext,
        statement_line_id: UUID,
        cleared: bool,
    ) -> OperationResult[BankStatementLine]:
        """
        Set a statement line's cleared flag by hand.

        Guard:
            The owning reconciliation, if any, must be draft.
        """

        def work() -> BankStatementLine:
            if not isinstance(cleared, bool):
                raise ValidationError("cleared must be true or false", field="cleared")
            lid = parse_uuid(statement_line_id, "statement_line_id")
            line = self._session.execute(
                select(BankStatementLineModel)
                .join(BankStatementModel, BankStatementLineModel.statement_id == BankStatementModel.id)
                .join(BankAccountModel, BankStatementModel.bank_account_id == BankAccountModel.id)
                .where(
                    BankStatementLineModel.id == lid,
                    BankAccountModel.organization_id == actor.organization_id,
                )
                .with_for_update()
            ).scalar_one_or_none()
            if line is None:
                raise StatementLineNotFoundError(lid)

            recon = self._reconciliation_for_statement(line.statement_id)
            if recon is not None:
                self._require_editable(recon)

            previous = line.cleared
            line.cleared = cleared
            line.updated_by_id = actor.actor_id
            if recon is not None:
                self._recompute.recompute(recon)
            else:
                self._session.flush()
            self._record(
                actor, STATEMENT_LINE_ENTITY, line.id, ActivityAction.CLEAR,
                before={"cleared": previous},
                after={"cleared": cleared},
            )
            return line.to_dto()

        return self._execute(
            "mark_cleared", actor, work,
            statement_line_id=str(statement_line_id), cleared=cleared,
        )

    # =========================================================================
    # Adjustments
    # =========================================================================

    def create_bank_adjustment(
        self,
        actor: ActorContext,
        reconciliation_id: UUID,
        adjustment_type: str,
        amount: Decimal | str | int | float,
        adjustment_date: date,
        memo: str | None = None,
    ) -> OperationResult[UUID]:
        """
        Post a bank fee or interest entry for a draft reconciliation.

        Returns:
            Result whose data is the new journal entry id.

        Postconditions:
            - One POSTED, balanced two-line entry numbered ``BR-<year>-<NNN>``.
            - If a matching unmatched statement line exists, it is linked to
              the entry's cash line and cleared.
        """

        def work() -> UUID:
            request = BankAdjustmentRequest(
                reconciliation_id=reconciliation_id,
                adjustment_type=adjustment_type,
                amount=amount,
                adjustment_date=adjustment_date,
                memo=memo,
            )
            recon = self._reconciliation(actor, request.reconciliation_id)
            self._require_editable(recon)

            before = _recon_state(recon)
            posted = self._adjustments.post(recon, request, actor.actor_id)
            self._recompute.recompute(recon)
            self._record(
                actor, RECONCILIATION_ENTITY, recon.id, ActivityAction.ADJUST,
                before=before,
                after={
                    **_recon_state(recon),
                    "journal_entry_id": posted.journal_entry_id,
                    "journal_number": posted.journal_number,
                    "adjustment_type": request.adjustment_type,
                    "amount": request.amount,
                    "matched_statement_line_id": posted.matched_statement_line_id,
                },
            )
            return posted.journal_entry_id

        return self._execute(
            "create_bank_adjustment", actor, work,
            reconciliation_id=reconciliation_id,
            adjustment_type=str(getattr(adjustment_type, "value", adjustment_type)),
            amount=str(amount),
        )

    # =========================================================================
    # Recompute and finalize
    # =========================================================================

    def recalc_reconciliation(
        self,
        actor: ActorContext,
        reconciliation_id: UUID,
    ) -> OperationResult[BalanceSnapshot]:
        """Recompute books balance and difference of a draft reconciliation."""

        def work() -> BalanceSnapshot:
            recon = self._reconciliation(actor, reconciliation_id)
            self._require_editable(recon)
            before = _recon_state(recon)
            snapshot = self._recompute.recompute(recon)
            self._record(
                actor, RECONCILIATION_ENTITY, recon.id, ActivityAction.RECALCULATE,
                before=before, after=_recon_state(recon),
            )
            return snapshot

        return self._execute(
            "recalc_reconciliation", actor, work, reconciliation_id=reconciliation_id,
        )

    def finalize_reconciliation(
        self,
        actor: ActorContext,
        reconciliation_id: UUID,
    ) -> OperationResult[Reconciliation]:
        """
        Lock a draft reconciliation whose difference is within tolerance.

        The balances are recomputed first, so the guard sees current books.

        Raises (as result):
            ReconciliationLockedError: not draft.
            DifferenceNotZeroError: |difference| > finalize tolerance.
        """

        def work() -> Reconciliation:
            recon = self._reconciliation(actor, reconciliation_id)
            transition = find_transition(RECONCILIATION_WORKFLOW, recon.status, "finalize")
            if transition is None:
                raise ReconciliationLockedError(recon.id, recon.status)

            before = _recon_state(recon)
            snapshot = self._recompute.recompute(recon)
            tolerance = self._config.finalize_tolerance
            if not within_tolerance(snapshot.difference, tolerance):
                logger.warning(
                    "finalize_guard_failed",
                    extra={
                        "guard": transition.guard.name,
                        "difference": str(snapshot.difference),
                        "tolerance": str(tolerance),
                    },
                )
                raise DifferenceNotZeroError(snapshot.difference, tolerance)

            now = self._clock.now()
            recon.status = transition.to_state
            recon.reconciled_by_id = actor.actor_id
            recon.reconciled_at = now
            recon.updated_at = now
            recon.updated_by_id = actor.actor_id
            self._session.flush()
            self._record(
                actor, RECONCILIATION_ENTITY, recon.id, ActivityAction.FINALIZE,
                before=before, after=_recon_state(recon),
            )
            logger.info(
                "reconciliation_finalized",
                extra={"reconciliation_id": str(recon.id), "difference": str(snapshot.difference)},
            )
            return recon.to_dto()

        return self._execute(
            "finalize_reconciliation", actor, work, reconciliation_id=reconciliation_id,
        )
