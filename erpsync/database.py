"""SQLite-backed contact store.

Contacts are unique on email and, when a document is present, on
document type + number. The store owns the soft-delete flags and the
audit timestamps; callers may not set them.

The public API is async: each call runs its SQLite work in a worker
thread so the event loop keeps serving other sync tasks.
"""

import asyncio
import sqlite3
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any
from contextlib import contextmanager

from .errors import DuplicateKeyError, ContactValidationError
from .models import Contact, ContactPage

logger = logging.getLogger(__name__)


# Columns callers may write
WRITABLE_FIELDS = frozenset({
    "document_type",
    "document_number",
    "legal_name",
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "address_extra",
    "city_code",
})

# Columns managed by the store only
PROTECTED_FIELDS = frozenset({
    "id",
    "is_deleted",
    "deleted_at",
    "created_at",
    "updated_at",
})

# Columns usable in find_all_paginated / find_one filters
FILTERABLE_FIELDS = frozenset({"email", "document_type", "document_number", "city_code"})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContactStore:
    """SQLite contact store."""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS contacts (
        id TEXT PRIMARY KEY,
        document_type TEXT,
        document_number TEXT,
        legal_name TEXT,
        first_name TEXT,
        last_name TEXT,
        email TEXT NOT NULL UNIQUE,
        phone TEXT,
        address TEXT,
        address_extra TEXT,
        city_code TEXT,
        is_deleted INTEGER NOT NULL DEFAULT 0,
        deleted_at TIMESTAMP,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    );

    -- Sparse: rows without a document never collide (NULLs are distinct)
    CREATE UNIQUE INDEX IF NOT EXISTS unique_document
    ON contacts(document_type, document_number);

    CREATE INDEX IF NOT EXISTS idx_contacts_deleted
    ON contacts(is_deleted);
    """

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._ensure_directory()
        self._init_schema()

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _init_schema(self) -> None:
        """Initialize database schema if not exists."""
        with self._get_connection() as conn:
            conn.executescript(self.SCHEMA)
            logger.info(f"Contact store initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper settings.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = sqlite3.connect(
            self.db_path,
            timeout=30.0  # Wait up to 30 seconds for locks to clear
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
        """Reject protected or unknown fields and normalize values."""
        protected = PROTECTED_FIELDS.intersection(data)
        if protected:
            raise ContactValidationError(
                f"Fields managed by the store cannot be set: {sorted(protected)}"
            )
        unknown = set(data) - WRITABLE_FIELDS
        if unknown:
            raise ContactValidationError(f"Unknown contact fields: {sorted(unknown)}")

        cleaned: Dict[str, Any] = {}
        for key, value in data.items():
            if hasattr(value, "value"):
                value = value.value  # DocumentType
            if isinstance(value, str):
                value = value.strip() or None
            cleaned[key] = value

        if cleaned.get("email"):
            cleaned["email"] = cleaned["email"].lower()
        return cleaned

    @staticmethod
    def _check_names(record: Dict[str, Any]) -> None:
        """A contact has a legal name OR first and last name, never both."""
        has_legal = bool(record.get("legal_name"))
        has_first = bool(record.get("first_name"))
        has_last = bool(record.get("last_name"))

        if has_legal and (has_first or has_last):
            raise ContactValidationError("Cannot have both legal_name and personal names")
        if not has_legal and not (has_first and has_last):
            raise ContactValidationError(
                "Must provide either legal_name OR both first_name and last_name"
            )

    @staticmethod
    def _row_to_contact(row: sqlite3.Row) -> Contact:
        return Contact(
            id=row["id"],
            document_type=row["document_type"],
            document_number=row["document_number"],
            legal_name=row["legal_name"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            phone=row["phone"],
            address=row["address"],
            address_extra=row["address_extra"],
            city_code=row["city_code"],
            is_deleted=bool(row["is_deleted"]),
            deleted_at=row["deleted_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _where(filters: Dict[str, Any], with_deleted: bool) -> tuple:
        unknown = set(filters) - FILTERABLE_FIELDS
        if unknown:
            raise ContactValidationError(f"Cannot filter on: {sorted(unknown)}")

        clauses = []
        params: List[Any] = []
        for key, value in filters.items():
            if key == "email" and isinstance(value, str):
                value = value.strip().lower()
            clauses.append(f"{key} = ?")
            params.append(value.value if hasattr(value, "value") else value)
        if not with_deleted:
            clauses.append("is_deleted = 0")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    # =========================================================================
    # SYNCHRONOUS OPERATIONS
    # =========================================================================

    def _find_by_email(self, email: str) -> Optional[Contact]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM contacts WHERE email = ? AND is_deleted = 0",
                (email.strip().lower(),)
            )
            row = cursor.fetchone()
            return self._row_to_contact(row) if row else None

    def _find_by_id(self, contact_id: str) -> Optional[Contact]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM contacts WHERE id = ?",
                (contact_id,)
            )
            row = cursor.fetchone()
            return self._row_to_contact(row) if row else None

    def _create(self, data: Dict[str, Any]) -> Contact:
        record = self._clean(data)
        if not record.get("email"):
            raise ContactValidationError("Email is required")
        self._check_names(record)

        now = _now()
        record["id"] = str(uuid.uuid4())
        record["created_at"] = now
        record["updated_at"] = now

        columns = ", ".join(record)
        placeholders = ", ".join("?" for _ in record)
        try:
            with self._get_connection() as conn:
                conn.execute(
                    f"INSERT INTO contacts ({columns}) VALUES ({placeholders})",
                    tuple(record.values()),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(f"Duplicate key for {record['email']}: {e}") from e

        logger.debug(f"Created contact {record['id']} ({record['email']})")
        return self._find_by_id(record["id"])

    def _update(self, contact_id: str, data: Dict[str, Any]) -> Optional[Contact]:
        changes = self._clean(data)
        existing = self._find_by_id(contact_id)
        if existing is None or existing.is_deleted:
            return None
        if not changes:
            return existing
        if "email" in changes and not changes["email"]:
            raise ContactValidationError("Email is required")

        merged = existing.model_dump()
        merged.update(changes)
        self._check_names(merged)

        changes["updated_at"] = _now()
        assignments = ", ".join(f"{key} = ?" for key in changes)
        try:
            with self._get_connection() as conn:
                conn.execute(
                    f"UPDATE contacts SET {assignments} WHERE id = ?",
                    (*changes.values(), contact_id),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(f"Duplicate key for contact {contact_id}: {e}") from e

        logger.debug(f"Updated contact {contact_id}")
        return self._find_by_id(contact_id)

    def _find_all_paginated(
        self,
        filters: Dict[str, Any],
        page: int,
        limit: int,
        with_deleted: bool,
    ) -> ContactPage:
        if page < 1 or limit < 1:
            raise ContactValidationError("Page and limit must be positive")

        where, params = self._where(filters, with_deleted)
        with self._get_connection() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM contacts {where}", params
            ).fetchone()[0]
            cursor = conn.execute(
                f"SELECT * FROM contacts {where} "
                f"ORDER BY created_at, id LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            )
            data = [self._row_to_contact(row) for row in cursor.fetchall()]
        return ContactPage(data=data, total=total)

    def _soft_delete(self, contact_id: str) -> bool:
        now = _now()
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE contacts SET is_deleted = 1, deleted_at = ?, updated_at = ? "
                "WHERE id = ? AND is_deleted = 0",
                (now, now, contact_id)
            )
            return cursor.rowcount > 0

    def _count(self, with_deleted: bool) -> int:
        where, params = self._where({}, with_deleted)
        with self._get_connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM contacts {where}", params).fetchone()[0]

    # =========================================================================
    # ASYNC API
    # =========================================================================

    async def find_by_email(self, email: str) -> Optional[Contact]:
        """Find an active contact by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            Contact or None if not found
        """
        return await asyncio.to_thread(self._find_by_email, email)

    async def find_by_id(self, contact_id: str) -> Optional[Contact]:
        """Find a contact by ID, including soft-deleted ones."""
        return await asyncio.to_thread(self._find_by_id, contact_id)

    async def create(self, data: Dict[str, Any]) -> Contact:
        """Create a contact.

        Args:
            data: Writable contact fields

        Returns:
            The stored contact

        Raises:
            DuplicateKeyError: Email or document already exists
            ContactValidationError: Data is incomplete or sets protected fields
        """
        return await asyncio.to_thread(self._create, data)

    async def update(self, contact_id: str, data: Dict[str, Any]) -> Optional[Contact]:
        """Update an active contact.

        Returns:
            The updated contact, or None if it does not exist or is deleted

        Raises:
            DuplicateKeyError: The change collides with another contact
            ContactValidationError: Data sets protected fields or breaks name rules
        """
        return await asyncio.to_thread(self._update, contact_id, data)

    async def find_all_paginated(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 10,
        with_deleted: bool = False,
    ) -> ContactPage:
        """Get one page of contacts matching ``filters`` (1-indexed pages)."""
        return await asyncio.to_thread(
            self._find_all_paginated, filters or {}, page, limit, with_deleted
        )

    async def find_one(self, filters: Dict[str, Any]) -> Optional[Contact]:
        """Get the first active contact matching ``filters``."""
        result = await self.find_all_paginated(filters, page=1, limit=1)
        return result.data[0] if result.data else None

    async def soft_delete(self, contact_id: str) -> bool:
        """Mark a contact as deleted.

        Returns:
            True if deleted, False if not found or already deleted
        """
        return await asyncio.to_thread(self._soft_delete, contact_id)

    async def count(self, with_deleted: bool = False) -> int:
        """Count contacts."""
        return await asyncio.to_thread(self._count, with_deleted)
