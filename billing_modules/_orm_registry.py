"""
Module ORM Registry (``billing_modules._orm_registry``).

Responsibility
--------------
Ensure all SQLAlchemy ORM models are imported so that ``Base.metadata``
contains their table definitions before tables are created.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``billing_kernel.db.engine.create_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``billing_modules.*.orm`` module.

    This function is idempotent -- repeated calls are harmless.
    """
    import billing_kernel.services.sequence_service  # noqa: F401
    import billing_modules.receivables.orm  # noqa: F401
