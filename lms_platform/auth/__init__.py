"""Authentication / authorization helpers.

This project intentionally keeps auth lightweight:

- Users table (user_name/email/password hash + role)
- Stateless JWT session tokens

The API supports both:

- `Authorization: Bearer <token>` (useful for scripts / API clients)
- A secure httpOnly cookie (set by `/user/login` and `/user/register`)

Role checks trust the token. Subscription checks re-read the users table.
"""

from .deps import (
    require_active_subscription,
    require_admin,
    require_authenticated,
    require_logged_out,
    require_role,
)
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "require_authenticated",
    "require_role",
    "require_admin",
    "require_active_subscription",
    "require_logged_out",
    "bootstrap_admin_if_needed",
    "create_user",
]
