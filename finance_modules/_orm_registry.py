"""
Module ORM Registry (``finance_modules._orm_registry``).

Responsibility
--------------
Ensure kernel and module SQLAlchemy ORM models are imported so that
``Base.metadata`` contains every table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``finance_kernel.db.engine.create_tables`` and by ``tests/conftest.py``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``finance_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    import finance_kernel.models  # noqa: F401
    import finance_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    # fmt: off
    import finance_modules.ap.orm  # noqa: F401
    import finance_modules.ar.orm  # noqa: F401
    import finance_modules.cash.orm  # noqa: F401
    # fmt: on
