# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   user_service      — registration, login, identity lookup
#   category_service  — create/list for Category
#   post_service      — listing, slugging, view counting, ownership-gated writes
#   comment_service   — append-only comments on a Post
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency. Failures are raised as ``app.exceptions`` errors.
