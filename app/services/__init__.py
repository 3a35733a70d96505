# Services package.
#
#   auth_service   — register / login / refresh rotation / logout
#   session_store  — persistence of issued refresh tokens (UserSession rows)
#   user_service   — user reads (cache-aside detail) and creation
#
# Every service works on an AsyncSession handed to it by the caller; none
# of them opens its own.  auth_service commits, because tokens must not
# leave the process before their session row is durable; the others only
# flush and leave the transaction boundary to the ``get_db`` dependency.
