"""Execution options understood by the concern query hooks."""

# Skip the ambient "hide soft-deleted rows" criteria for one statement.
INCLUDE_DELETED = "include_deleted"

# Skip the default ORDER BY a sortable entity gets on every select.
SKIP_DEFAULT_ORDER = "skip_default_order"
