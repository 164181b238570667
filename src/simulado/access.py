import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from .config import settings
from .errors import (
    EmptyInput,
    NotFound,
    PendingApproval,
    TransportError,
    UnknownStatus,
)
from .models import User, UserStatus

logger = logging.getLogger(__name__)

# The allow-list table is maintained by hand, partly with Portuguese values.
STATUS_ALIASES: Dict[str, UserStatus] = {
    "pending": UserStatus.PENDING,
    "pendente": UserStatus.PENDING,
    "approved": UserStatus.APPROVED,
    "aprovado": UserStatus.APPROVED,
}


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# --- Stores ---
class UserStore(ABC):
    """Read-only lookup of allow-list rows by email."""

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Returns the matching row, None when absent. Raises TransportError."""


class SupabaseUserStore(UserStore):
    """Looks users up in a hosted Supabase table of {id, email, status} rows."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        self.url = url if url is not None else settings.SUPABASE_URL
        self.key = key if key is not None else settings.SUPABASE_KEY
        self.table = table or settings.USERS_TABLE
        self._client = client
        if client is None and not (self.url and self.key):
            logger.warning("SUPABASE_URL or SUPABASE_KEY is not set; logins will fail.")

    @property
    def client(self) -> Client:
        if self._client is None:
            if not (self.url and self.key):
                raise TransportError("user store URL/key pair is not configured")
            self._client = create_client(self.url, self.key)
        return self._client

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .ilike("email", _escape_like(email))
                .execute()
            )
        except APIError as e:
            logger.error(f"User store error for {email}: {e.message}")
            raise TransportError(f"store error: {e.message}") from e
        except httpx.HTTPError as e:
            logger.error(f"User store unreachable: {e}")
            raise TransportError(f"store unreachable: {e}") from e

        # PostgREST also reads "*" as a wildcard, so keep exact matches only
        rows = [
            row
            for row in (response.data or [])
            if normalize_email(row.get("email", "")) == email
        ]
        return rows[0] if rows else None


def _escape_like(value: str) -> str:
    for char in ("\\", "%", "_"):
        value = value.replace(char, "\\" + char)
    return value


# --- Service Layer: Access Gate ---
class AccessGate:
    def __init__(self, store: UserStore):
        self.store = store

    def authenticate(self, email: str) -> User:
        clean_email = normalize_email(email)
        if not clean_email:
            raise EmptyInput()

        logger.info(f"Login attempt for {clean_email}")
        row = self.store.find_by_email(clean_email)
        if row is None:
            logger.warning(f"Login refused, not registered: {clean_email}")
            raise NotFound()

        raw_status = str(row.get("status", "")).strip().lower()
        status = STATUS_ALIASES.get(raw_status)
        if status is None:
            logger.warning(f"Login refused, unknown status {raw_status!r}: {clean_email}")
            raise UnknownStatus(f"status {raw_status!r}")
        if status is UserStatus.PENDING:
            logger.info(f"Login refused, pending approval: {clean_email}")
            raise PendingApproval()

        return User(id=str(row.get("id", "")), email=clean_email, status=status)
