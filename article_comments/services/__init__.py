# Services package.
#
# The comment core, leaf to root:
#
#   comment_store    CommentStore: persistence and summary projections
#   guard            can_mutate: authorship check for edit/delete
#   listing          ordering and pagination for root/reply listings
#   comment_service  list/create/edit/reply/delete handlers
#   user_service     caller identity resolution
#
# Handlers take a CommentStore as their first argument; the store wraps
# the request's AsyncSession so the router layer controls the
# transaction boundary via the ``get_db`` dependency.
