"""
Module ORM Registry (``backoffice_modules._orm_registry``).

Responsibility
--------------
Import every SQLAlchemy model so ``Base.metadata`` holds the full schema
before ``create_tables()`` runs.  Kernel models go first because module
tables reference none of them but share the same metadata.

Usage
-----
``backoffice_kernel.db.engine.create_tables()`` and ``tests/conftest.py``
call ``import_all_orm_models()``.
"""


def import_all_orm_models() -> None:
    """Register kernel and module ORM models.  Idempotent."""
    import backoffice_kernel.models  # noqa: F401
    import backoffice_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    # fmt: off
    import backoffice_modules.project.orm  # noqa: F401
    import backoffice_modules.procurement.orm  # noqa: F401
    import backoffice_modules.billing.orm  # noqa: F401
    import backoffice_modules.payables.orm  # noqa: F401
    # fmt: on
