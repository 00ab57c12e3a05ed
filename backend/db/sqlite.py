"""SQLite database operations for Cuentas."""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

from backend.config import settings
from backend.models import (
    Category,
    Currency,
    Formato,
    ImportSource,
    PaymentMethod,
    Transaction,
    TransactionCreate,
    TransactionType,
)

# SQL schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS category_groups (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    UNIQUE (user_id, name)
);

CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    group_id TEXT REFERENCES category_groups(id),
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_categories_user ON categories(user_id);

CREATE TABLE IF NOT EXISTS payment_methods (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_payment_methods_user ON payment_methods(user_id);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    date TEXT NOT NULL,
    type TEXT NOT NULL,
    description TEXT NOT NULL,
    amount TEXT NOT NULL,
    currency TEXT NOT NULL,
    category_id TEXT NOT NULL REFERENCES categories(id),
    payment_method_id TEXT NOT NULL REFERENCES payment_methods(id),
    installments TEXT,
    formato TEXT NOT NULL,
    source TEXT NOT NULL,
    series_id TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions(user_id, date);
"""


class ConstraintError(Exception):
    """Raised when an insert violates a foreign key or uniqueness constraint."""

    pass


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or settings.db_path
        settings.ensure_directories()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def find_categories_by_user(self, user_id: str) -> list[Category]:
        """Get all categories owned by a user, with their group name."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT c.id, c.name, g.name AS group_name
                FROM categories c LEFT JOIN category_groups g ON g.id = c.group_id
                WHERE c.user_id = ?
                ORDER BY c.name
                """,
                (user_id,),
            )
            return [Category(id=row["id"], name=row["name"], group=row["group_name"]) for row in cursor.fetchall()]

    def find_payment_methods_by_user(self, user_id: str) -> list[PaymentMethod]:
        """Get all payment methods owned by a user."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT id, name FROM payment_methods WHERE user_id = ? ORDER BY name",
                (user_id,),
            )
            return [PaymentMethod(id=row["id"], name=row["name"]) for row in cursor.fetchall()]

    def get_or_create_category_group(self, user_id: str, name: str) -> str:
        """Return the id of a user's category group, creating it if needed."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id FROM category_groups WHERE user_id = ? AND name = ?",
                (user_id, name),
            ).fetchone()
            if row:
                return row["id"]

            group_id = str(uuid4())
            conn.execute(
                "INSERT INTO category_groups (id, user_id, name) VALUES (?, ?, ?)",
                (group_id, user_id, name),
            )
            conn.commit()
            return group_id

    def create_category(self, user_id: str, name: str, parent_id: str | None = None) -> Category:
        """Create a category under an optional group."""
        category_id = str(uuid4())
        with self._get_connection() as conn:
            try:
                conn.execute(
                    "INSERT INTO categories (id, user_id, name, group_id) VALUES (?, ?, ?, ?)",
                    (category_id, user_id, name, parent_id),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise ConstraintError(f"Cannot create category {name!r}: {e}") from e
        return Category(id=category_id, name=name)

    def create_payment_method(self, user_id: str, name: str) -> PaymentMethod:
        """Create a payment method for a user."""
        payment_method_id = str(uuid4())
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO payment_methods (id, user_id, name) VALUES (?, ?, ?)",
                (payment_method_id, user_id, name),
            )
            conn.commit()
        return PaymentMethod(id=payment_method_id, name=name)

    def create_transaction(self, transaction: TransactionCreate) -> Transaction:
        """
        Persist a transaction.

        Raises:
            ConstraintError: If the category or payment method doesn't exist
        """
        created = Transaction(id=str(uuid4()), **transaction.model_dump())
        with self._get_connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO transactions (id, user_id, date, type, description,
                    amount, currency, category_id, payment_method_id, installments,
                    formato, source, series_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        created.id,
                        created.user_id,
                        created.date.isoformat(),
                        created.type.value,
                        created.description,
                        str(created.amount),
                        created.currency.value,
                        created.category_id,
                        created.payment_method_id,
                        created.installments,
                        created.formato.value,
                        created.source.value,
                        created.series_id,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise ConstraintError(f"Cannot create transaction: {e}") from e
        return created

    def get_transactions(
        self,
        user_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        source: ImportSource | None = None,
        limit: int = 1000,
    ) -> list[Transaction]:
        """Get a user's transactions with optional filters."""
        query = """
            SELECT id, user_id, date, type, description, amount, currency,
                   category_id, payment_method_id, installments, formato, source, series_id
            FROM transactions WHERE user_id = ?
        """
        params: list = [user_id]

        if start_date:
            query += " AND date >= ?"
            params.append(start_date.isoformat())
        if end_date:
            query += " AND date <= ?"
            params.append(end_date.isoformat())
        if source:
            query += " AND source = ?"
            params.append(source.value)

        query += " ORDER BY date, rowid LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        """Convert a database row to a Transaction model."""
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            date=date.fromisoformat(row["date"]),
            type=TransactionType(row["type"]),
            description=row["description"],
            amount=Decimal(row["amount"]),
            currency=Currency(row["currency"]),
            category_id=row["category_id"],
            payment_method_id=row["payment_method_id"],
            installments=row["installments"],
            formato=Formato(row["formato"]),
            source=ImportSource(row["source"]),
            series_id=row["series_id"],
        )


# Global database instance
db = Database()
