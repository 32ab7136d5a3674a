"""Supabase client for account record storage."""

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

from supabase import create_client, Client
from postgrest.exceptions import APIError

from ..config import settings
from ..models.internal_models import Account, StoreResult

logger = logging.getLogger(__name__)

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

# Logical field name -> column name. "age" is derived and has no column.
FIELD_COLUMNS: Dict[str, Optional[str]] = {
    "phoneNumber": "phone_number",
    "name": "name",
    "dateOfBirth": "date_of_birth",
    "age": None,
    "gender": "gender",
    "registeredAt": "registered_at",
    "lastLoginAt": "last_login_at",
}

UPDATABLE_FIELDS = frozenset({"name", "dateOfBirth", "gender", "lastLoginAt"})


class PersistenceError(Exception):
    """Raised when the record store cannot complete a read."""
    pass


def _to_db_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def account_to_row(account: Account) -> Dict[str, Any]:
    return {
        "phone_number": account.phone_number,
        "name": account.name,
        "date_of_birth": account.date_of_birth.isoformat(),
        "gender": account.gender,
        "registered_at": account.registered_at.isoformat(),
        "last_login_at": account.last_login_at.isoformat(),
    }


def row_to_account(row: Dict[str, Any]) -> Account:
    return Account(
        phone_number=row["phone_number"],
        name=row["name"],
        date_of_birth=date.fromisoformat(row["date_of_birth"]),
        gender=row["gender"],
        registered_at=_parse_timestamp(row["registered_at"]),
        last_login_at=_parse_timestamp(row["last_login_at"]),
    )


class SupabaseClient:
    """Client for Supabase database operations."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        """Initialize Supabase client with configuration."""
        self._client: Optional[Client] = None
        self._url = url or settings.supabase_url
        self._key = key or settings.supabase_anon_key

    @property
    def client(self) -> Client:
        """Get or create Supabase client instance."""
        if self._client is None:
            self._client = create_client(self._url, self._key)
        return self._client

    async def health_check(self) -> bool:
        """Check if database connection is healthy."""
        try:
            self.client.table(settings.accounts_table).select("phone_number", count="exact").limit(0).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


class AccountRepository:
    """
    Repository for account records.

    Every value reaches PostgREST as a bound filter argument or JSON body,
    never as part of query text.
    """

    def __init__(self, supabase_client: SupabaseClient, table: Optional[str] = None):
        """Initialize repository with Supabase client."""
        self.client = supabase_client
        self.table_name = table or settings.accounts_table

    def _table(self):
        return self.client.client.table(self.table_name)

    async def exists(self, phone_number: str) -> bool:
        """Return True if an account exists for the phone number."""
        try:
            result = self._table().select("phone_number").eq("phone_number", phone_number).limit(1).execute()
            return bool(result.data)
        except APIError as e:
            logger.error(f"Database error checking account {phone_number}: {e}")
            raise PersistenceError(f"Failed to check account: {e}")
        except Exception as e:
            logger.error(f"Unexpected error checking account {phone_number}: {e}")
            raise PersistenceError(f"Failed to check account: {e}")

    async def get(self, phone_number: str) -> Optional[Account]:
        """Retrieve an account by phone number, or None if absent."""
        try:
            result = self._table().select("*").eq("phone_number", phone_number).limit(1).execute()
        except APIError as e:
            logger.error(f"Database error retrieving account {phone_number}: {e}")
            raise PersistenceError(f"Failed to retrieve account: {e}")
        except Exception as e:
            logger.error(f"Unexpected error retrieving account {phone_number}: {e}")
            raise PersistenceError(f"Failed to retrieve account: {e}")

        if not result.data:
            return None

        try:
            return row_to_account(result.data[0])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed account row for {phone_number}: {e}")
            raise PersistenceError(f"Malformed account record: {e}")

    async def insert(self, account: Account) -> StoreResult:
        """Insert a new account; a duplicate phone number reports CONFLICT."""
        try:
            result = self._table().insert(account_to_row(account)).execute()
        except APIError as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                logger.warning(f"Account {account.phone_number} already exists")
                return StoreResult.CONFLICT
            logger.error(f"Database error inserting account {account.phone_number}: {e}")
            return StoreResult.FAILED
        except Exception as e:
            logger.error(f"Unexpected error inserting account {account.phone_number}: {e}")
            return StoreResult.FAILED

        if not result.data:
            logger.error(f"Insert for account {account.phone_number} returned no rows")
            return StoreResult.FAILED

        logger.info(f"Successfully inserted account {account.phone_number}")
        return StoreResult.OK

    async def update_field(self, phone_number: str, field: str, value: Any) -> StoreResult:
        """
        Update a single logical field of an account.

        Raises:
            ValueError: if the field is unknown, derived or immutable
        """
        if field not in FIELD_COLUMNS:
            raise ValueError(f"Unknown account field: {field}")
        if field not in UPDATABLE_FIELDS:
            raise ValueError(f"Account field cannot be updated: {field}")

        column = FIELD_COLUMNS[field]
        try:
            result = self._table().update({column: _to_db_value(value)}).eq("phone_number", phone_number).execute()
        except APIError as e:
            logger.error(f"Database error updating {field} for account {phone_number}: {e}")
            return StoreResult.FAILED
        except Exception as e:
            logger.error(f"Unexpected error updating {field} for account {phone_number}: {e}")
            return StoreResult.FAILED

        if not result.data:
            logger.warning(f"Account {phone_number} not found for update")
            return StoreResult.NOT_FOUND

        logger.info(f"Updated {field} for account {phone_number}")
        return StoreResult.OK

    async def delete(self, phone_number: str) -> StoreResult:
        """Delete an account by phone number."""
        try:
            result = self._table().delete().eq("phone_number", phone_number).execute()
        except APIError as e:
            logger.error(f"Database error deleting account {phone_number}: {e}")
            return StoreResult.FAILED
        except Exception as e:
            logger.error(f"Unexpected error deleting account {phone_number}: {e}")
            return StoreResult.FAILED

        if not result.data:
            logger.warning(f"Account {phone_number} not found for deletion")
            return StoreResult.NOT_FOUND

        logger.info(f"Successfully deleted account {phone_number}")
        return StoreResult.OK


class DatabaseManager:
    """High-level database manager that coordinates repositories."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        """Initialize database manager with client and repositories."""
        self.client = client or SupabaseClient()
        self.accounts = AccountRepository(self.client)

    async def health_check(self) -> bool:
        """Check overall database health."""
        return await self.client.health_check()
