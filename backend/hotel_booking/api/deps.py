"""Shared API dependencies, the single import point for all routers.

Re-exports database session, authentication and collaborator dependencies
so that router modules can import everything they need from one place::

    from hotel_booking.api.deps import get_db, get_optional_user
"""

from hotel_booking.auth.dependencies import get_current_user, get_optional_user, require_staff
from hotel_booking.database import get_db
from hotel_booking.payments.payu import get_gateway_config, get_payu_client
from hotel_booking.services.cache import get_cache
from hotel_booking.services.events import get_event_dispatcher

__all__ = [
    "get_db",
    "get_current_user",
    "get_optional_user",
    "require_staff",
    "get_cache",
    "get_event_dispatcher",
    "get_gateway_config",
    "get_payu_client",
]
