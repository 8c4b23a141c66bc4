"""Tests for ActorContext role checks and OperationResult."""

from decimal import Decimal
from uuid import uuid4

import pytest

from finance_kernel.exceptions import (
    AuthorizationError,
    DifferenceNotZeroError,
    ReconciliationNotFoundError,
    ValidationError,
)
from finance_services.access import ActorContext, authorize, check_role
from finance_services.results import INTERNAL_ERROR_CODE, OperationResult


def _actor(role):
    return ActorContext(actor_id=uuid4(), organization_id=uuid4(), role=role)


class TestRoleCheck:

    @pytest.mark.parametrize("role", ["admin", "finance", "Finance", " admin "])
    def test_finance_roles_allowed(self, role):
        assert check_role(_actor(role)) == (True, "")

    @pytest.mark.parametrize("role", ["viewer", "", None])
    def test_other_roles_denied(self, role):
        assert check_role(_actor(role)) == (False, "Admins only")

    def test_custom_allowed_roles(self):
        assert check_role(_actor("controller"), allowed_roles={"controller"})[0]
        assert not check_role(_actor("finance"), allowed_roles={"controller"})[0]

    def test_authorize_raises_and_logs(self, captured_logs):
        actor = _actor("viewer")

        with pytest.raises(AuthorizationError) as exc_info:
            authorize(actor, "smart_match")

        assert exc_info.value.category == "not_allowed"
        assert str(exc_info.value) == "Admins only"
        denied = [r for r in captured_logs() if r["message"] == "access_denied"]
        assert denied[0]["action"] == "smart_match"
        assert denied[0]["role"] == "viewer"

    def test_actor_ids_must_be_uuids(self):
        with pytest.raises(ValidationError):
            ActorContext(actor_id="not-a-uuid", organization_id=uuid4(), role="admin")
        with pytest.raises(ValidationError):
            ActorContext(actor_id=uuid4(), organization_id="nope", role="admin")


class TestOperationResult:

    def test_ok(self):
        result = OperationResult.ok(3)

        assert result.success and result.is_success
        assert result.data == 3
        assert result.error is None

    def test_from_error_carries_code_category_and_details(self):
        result = OperationResult.from_error(
            DifferenceNotZeroError(Decimal("1.00"), Decimal("0.50"))
        )

        assert not result.success
        assert result.error == "Difference must be zero before finalizing"
        assert result.error_code == "DIFFERENCE_NOT_ZERO"
        assert result.category == "rule_violation"
        assert result.details == {"difference": "1.00", "tolerance": "0.50"}

    def test_not_found_category(self):
        missing = uuid4()
        result = OperationResult.from_error(ReconciliationNotFoundError(missing))

        assert result.category == "not_found"
        assert result.details == {"entity_id": str(missing)}

    def test_internal(self):
        result = OperationResult.internal()

        assert result.error_code == INTERNAL_ERROR_CODE
        assert result.category == "internal"
        assert result.data is None
