# Storage adapters package.
#
# Each module exposes a small set of async functions over a single table
# family:
#
#   users      — identity and profile lookups
#   followers  — (follower, followed) membership
#   favorites  — (user, article) membership + favorites_count upkeep
#   articles   — CRUD + filtered listing of article rows
#
# All functions accept an AsyncSession as their first argument and never
# commit; the repository controls the transaction boundary via
# ``unit_of_work``.  They return ORM rows from ``conduit.models``, raise
# ``EntityNotFoundError`` for a missing row, and let SQLAlchemy errors
# propagate.
