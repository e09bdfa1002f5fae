"""`MetaData` with deterministic constraint and index names.

Alembic autogenerate compares names, so generated ones would show up as
spurious drops and adds. Names follow ``<kind>_<table>_<columns>``, e.g.
``ix_sessions_user_id`` or ``fk_sessions_user_id_users``.
"""

from sqlalchemy import MetaData

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_N_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def make_metadata() -> MetaData:
    """Return a fresh `MetaData` using the project naming convention."""
    return MetaData(naming_convention=NAMING_CONVENTION)


#: Metadata holding the default tables; the target of Alembic migrations.
metadata = make_metadata()
