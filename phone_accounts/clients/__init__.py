"""Client modules for external service integrations."""

from phone_accounts.clients.supabase_client import (
    SupabaseClient,
    AccountRepository,
    DatabaseManager,
    PersistenceError
)

from phone_accounts.clients.sms_client import (
    SMSClient,
    DeliveryResult
)

__all__ = [
    "SupabaseClient",
    "AccountRepository",
    "DatabaseManager",
    "PersistenceError",
    "SMSClient",
    "DeliveryResult"
]
