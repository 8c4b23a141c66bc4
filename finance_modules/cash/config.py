"""
finance_modules.cash.config
============================

Responsibility:
    Configuration schema for bank reconciliation.  Defines the structure,
    validation rules, and defaults for matching tolerances, the finalize
    tolerance, adjustment account codes, journal numbering and the roles
    allowed to reconcile.

Architecture:
    Module layer (finance_modules).  Consumed by ReconciliationService and
    its collaborators.  MUST NOT be imported by finance_kernel.

Invariants enforced:
    - Tolerances are non-negative ``Decimal`` / ``int`` (validated in
      ``__post_init__``).
    - Account codes and the journal prefix are non-empty.
    - At least one role is allowed.

Failure modes:
    - Invalid configuration values -> ``ValueError`` from ``__post_init__``.
    - Unknown keys in ``from_dict`` / ``from_yaml`` -> ``ValueError``.

Audit relevance:
    ``finalize_tolerance`` decides whether a reconciliation with residual
    difference may be locked.  Changes to it should be audited.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Self

import yaml

from finance_engines.matching import MatchTolerance
from finance_kernel.logging_config import get_logger

logger = get_logger("modules.cash.config")


@dataclass(frozen=True)
class CashConfig:
    """
    Configuration schema for bank reconciliation.

    Contract:
        All fields have defaults matching the reconciliation workflow:
        one cent and three days for matching, fifty cents for finalize,
        ``6100`` bank fees and ``4100`` interest income.

    Example::

        config = CashConfig.from_yaml("config/cash.yaml")
        service = ReconciliationService(session, config=config)
    """

    # Matching
    match_amount_tolerance: Decimal = Decimal("0.01")
    match_date_tolerance_days: int = 3

    # Finalize guard
    finalize_tolerance: Decimal = Decimal("0.50")

    # Adjustment accounts (chart of accounts codes)
    fee_account_code: str = "6100"
    interest_account_code: str = "4100"
    journal_number_prefix: str = "BR"

    allowed_roles: tuple[str, ...] = ("admin", "finance")

    def __post_init__(self):
        for name in ("match_amount_tolerance", "finalize_tolerance"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                value = Decimal(str(value))
                object.__setattr__(self, name, value)
            if value < 0:
                raise ValueError(f"{name} cannot be negative")

        if self.match_date_tolerance_days < 0:
            raise ValueError("match_date_tolerance_days cannot be negative")

        for name in ("fee_account_code", "interest_account_code", "journal_number_prefix"):
            if not str(getattr(self, name) or "").strip():
                raise ValueError(f"{name} is required")

        roles = tuple(r.strip().lower() for r in self.allowed_roles if r and r.strip())
        if not roles:
            raise ValueError("allowed_roles cannot be empty")
        object.__setattr__(self, "allowed_roles", roles)

        logger.info(
            "cash_config_initialized",
            extra={
                "match_amount_tolerance": str(self.match_amount_tolerance),
                "match_date_tolerance_days": self.match_date_tolerance_days,
                "finalize_tolerance": str(self.finalize_tolerance),
                "fee_account_code": self.fee_account_code,
                "interest_account_code": self.interest_account_code,
            },
        )

    @property
    def match_tolerance(self) -> MatchTolerance:
        return MatchTolerance(
            amount_tolerance=self.match_amount_tolerance,
            date_tolerance_days=self.match_date_tolerance_days,
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard reconciliation defaults."""
        logger.info("cash_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. loaded from a file)."""
        logger.info(
            "cash_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown cash config keys: {', '.join(unknown)}")
        values = dict(data)
        if "allowed_roles" in values:
            values["allowed_roles"] = tuple(values["allowed_roles"] or ())
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """
        Load config from a YAML file.

        The file holds a mapping of field names to values, optionally nested
        under a top-level ``cash`` key.  An empty file yields the defaults.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Cash config must be a mapping: {path}")
        if set(data) == {"cash"}:
            data = data["cash"] or {}
        # YAML parses 0.01 as float
        for key in ("match_amount_tolerance", "finalize_tolerance"):
            if key in data and not isinstance(data[key], Decimal):
                data[key] = Decimal(str(data[key]))
        logger.info("cash_config_loaded_from_yaml", extra={"path": str(path)})
        return cls.from_dict(data)
