"""Apply a branch scope to SQLAlchemy queries."""

from sqlalchemy.orm import Query

from crm_api.services.access_resolver import BranchScope, FixedTo, Unrestricted


def apply_branch_scope(query: Query, scope: BranchScope, column) -> Query:
    """Constrain ``query`` to ``scope`` on ``column``.

    Reads, updates and deletes must all go through this so a row that
    cannot be listed cannot be changed either.
    """
    if isinstance(scope, Unrestricted):
        return query
    if isinstance(scope, FixedTo):
        return query.filter(column == scope.branch)
    raise TypeError(f"Unsupported branch scope: {scope!r}")
