"""
Module ORM Registry (``exit_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``exit_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()`` first.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``exit_modules``
packages and from ``exit_kernel.models``.  MUST NOT be imported at module
level by ``exit_kernel``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``exit_modules.*.orm`` module to register ORM models.

    ``exit_requests`` must be registered before the child tables that hold
    a foreign key to it.

    This function is idempotent -- repeated calls are harmless.
    """
    import exit_kernel.models  # noqa: F401
    # fmt: off
    import exit_modules.exit_request.orm  # noqa: F401
    import exit_modules.payroll_inputs.orm  # noqa: F401
    import exit_modules.dues.orm  # noqa: F401
    import exit_modules.assets.orm  # noqa: F401
    import exit_modules.statutory.orm  # noqa: F401
    import exit_modules.settlement.orm  # noqa: F401
    # fmt: on
