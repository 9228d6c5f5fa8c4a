"""
Board and contact storage backend (SQLite).

Lists, cards and comments are inserted once and never updated. Contacts are
committed per card as one all-or-nothing batch. A board change clears every
table through truncate().
"""
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Dict, Callable

from .schema import (
    ABSENT,
    BoardList,
    Card,
    Comment,
    Contact,
    CURRENT_SCHEMA_VERSION,
    PHONE_FIELDS,
)

logger = logging.getLogger(__name__)

TABLES = ("lists", "cards", "comments", "contacts")


class StoreError(Exception):
    """Raised when a contact batch could not be committed. The batch was rolled back."""
    pass


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with WAL mode and name-addressable rows."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(f"PRAGMA user_version = {int(version)}")


def _create_structural_tables(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS lists (
            id TEXT PRIMARY KEY,
            name TEXT,
            board_id TEXT
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS cards (
            id TEXT PRIMARY KEY,
            name TEXT,
            description TEXT,
            list_id TEXT,
            board_id TEXT
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS comments (
            id TEXT PRIMARY KEY,
            card_id TEXT,
            text TEXT
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_cards_board ON cards(board_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_card ON comments(card_id)")


def _create_contacts_v1(conn: sqlite3.Connection, table: str = "contacts") -> None:
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            card_id TEXT NOT NULL,
            name TEXT NOT NULL,
            location TEXT NOT NULL,
            phone TEXT,
            UNIQUE (card_id, name, location, phone)
        )
    """)


def _create_contacts_v2(conn: sqlite3.Connection, table: str = "contacts") -> None:
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            card_id TEXT NOT NULL,
            name TEXT NOT NULL,
            location TEXT NOT NULL,
            mobile TEXT,
            landline TEXT,
            business TEXT,
            UNIQUE (card_id, name, location, mobile, landline, business)
        )
    """)


def migrate_v1_to_v2(conn: sqlite3.Connection) -> None:
    """
    Replace the generic `phone` column with typed mobile/landline/business.

    The legacy number is carried into `mobile`. Contact ids are preserved.
    """
    _create_contacts_v2(conn, table="contacts_v2")
    conn.execute("""
        INSERT INTO contacts_v2 (id, card_id, name, location, mobile, landline, business)
        SELECT id, card_id, name, location, NULLIF(TRIM(phone), ''), NULL, NULL
        FROM contacts
    """)
    conn.execute("DROP TABLE contacts")
    conn.execute("ALTER TABLE contacts_v2 RENAME TO contacts")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_contacts_card ON contacts(card_id)")


def _detect_unversioned(conn: sqlite3.Connection) -> int:
    """Infer the version of a contacts table created before user_version was set."""
    columns = {row[1] for row in conn.execute("PRAGMA table_info(contacts)")}
    return 2 if "mobile" in columns else 1


# version reached -> step that gets there from version - 1
MIGRATIONS: Dict[int, Callable[[sqlite3.Connection], None]] = {
    2: migrate_v1_to_v2,
}


class ContactStore:
    """SQLite-backed store for board structure and extracted contacts."""

    def __init__(self, db_path: str, schema_version: int = CURRENT_SCHEMA_VERSION):
        """Open (or create) the database and bring it up to `schema_version`."""
        self.db_path = str(db_path)
        self.target_version = schema_version
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables on a fresh database, otherwise run pending migrations."""
        with _connect(self.db_path) as conn:
            _create_structural_tables(conn)
            has_contacts = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'contacts'"
            ).fetchone()
            version = _schema_version(conn)

            if not has_contacts:
                if self.target_version == 1:
                    _create_contacts_v1(conn)
                else:
                    _create_contacts_v2(conn)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_contacts_card ON contacts(card_id)")
                _set_schema_version(conn, self.target_version)
            else:
                version = version or _detect_unversioned(conn)
                self._migrate(conn, version, self.target_version)
            conn.commit()

    def _migrate(self, conn: sqlite3.Connection, current: int, target: int) -> None:
        if current > target:
            raise StoreError(
                f"Database schema v{current} is newer than supported v{target}"
            )
        while current < target:
            step = MIGRATIONS[current + 1]
            logger.info(f"Migrating contact schema v{current} -> v{current + 1}")
            step(conn)
            current += 1
        _set_schema_version(conn, current)

    @property
    def schema_version(self) -> int:
        with _connect(self.db_path) as conn:
            return _schema_version(conn)

    # ── Structural rows (insert-if-absent) ───────────────────────────────────

    def insert_list(self, board_list: BoardList) -> bool:
        """Insert a list unless its id exists. Returns True if a row was written."""
        return self._insert_or_ignore(
            "INSERT OR IGNORE INTO lists (id, name, board_id) VALUES (?, ?, ?)",
            (board_list.list_id, board_list.name, board_list.board_id),
        )

    def insert_card(self, card: Card) -> bool:
        return self._insert_or_ignore(
            "INSERT OR IGNORE INTO cards (id, name, description, list_id, board_id) VALUES (?, ?, ?, ?, ?)",
            (card.card_id, card.name, card.description, card.list_id, card.board_id),
        )

    def insert_comment(self, comment: Comment) -> bool:
        return self._insert_or_ignore(
            "INSERT OR IGNORE INTO comments (id, card_id, text) VALUES (?, ?, ?)",
            (comment.comment_id, comment.card_id, comment.text),
        )

    def _insert_or_ignore(self, sql: str, params: tuple) -> bool:
        with _connect(self.db_path) as conn:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount == 1

    def comments_for_card(self, card_id: str) -> List[str]:
        """Comment bodies for a card, in insertion order."""
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT text FROM comments WHERE card_id = ? ORDER BY rowid ASC",
                (card_id,)
            ).fetchall()
        return [row["text"] for row in rows]

    # ── Contacts ─────────────────────────────────────────────────────────────

    def _phone_columns(self) -> tuple:
        return PHONE_FIELDS[self.target_version]

    def contact_exists(self, contact: Contact) -> bool:
        """
        True if a stored contact for the same card has the same name and
        location and shares at least one populated phone category.
        """
        populated = [
            (col, contact.phone(col)) for col in self._phone_columns()
            if contact.phone(col) is not ABSENT
        ]
        if not populated:
            return False
        phone_clause = " OR ".join(f"{col} = ?" for col, _ in populated)
        sql = (
            "SELECT 1 FROM contacts WHERE card_id = ? AND name = ? AND location = ? "
            f"AND ({phone_clause}) LIMIT 1"
        )
        params = [contact.card_id, contact.name, contact.location] + [v for _, v in populated]
        with _connect(self.db_path) as conn:
            return conn.execute(sql, params).fetchone() is not None

    def commit_contacts(self, card_id: str, contacts: List[Contact]) -> int:
        """
        Insert every contact in one transaction.

        Returns the number of rows written. Any sqlite error rolls the whole
        batch back and is re-raised as StoreError.
        """
        if not contacts:
            return 0
        columns = self._phone_columns()
        sql = (
            f"INSERT INTO contacts (card_id, name, location, {', '.join(columns)}) "
            f"VALUES (?, ?, ?, {', '.join('?' for _ in columns)})"
        )
        conn = _connect(self.db_path)
        try:
            with conn:
                for contact in contacts:
                    if contact.card_id != card_id:
                        raise StoreError(
                            f"Contact for card {contact.card_id} in batch for card {card_id}"
                        )
                    conn.execute(
                        sql,
                        [contact.card_id, contact.name, contact.location]
                        + [contact.phone(col) for col in columns],
                    )
        except sqlite3.Error as e:
            raise StoreError(f"Contact batch for card {card_id} rolled back: {e}") from e
        finally:
            conn.close()
        return len(contacts)

    def contacts_for_card(self, card_id: str) -> List[Contact]:
        columns = self._phone_columns()
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT id, card_id, name, location, {', '.join(columns)} "
                "FROM contacts WHERE card_id = ? ORDER BY id ASC",
                (card_id,)
            ).fetchall()
        return [
            Contact(
                card_id=row["card_id"],
                name=row["name"],
                location=row["location"],
                phones={col: row[col] for col in columns},
                schema_version=self.target_version,
                contact_id=row["id"],
            )
            for row in rows
        ]

    # ── Maintenance ──────────────────────────────────────────────────────────

    def truncate(self) -> None:
        """Delete every row from all four tables in one transaction."""
        with _connect(self.db_path) as conn:
            for table in TABLES:
                conn.execute(f"DELETE FROM {table}")
            conn.commit()
        logger.info("Store truncated")

    def count(self, table: str, board_id: Optional[str] = None) -> int:
        """Row count for a table, optionally scoped to a board (lists and cards only)."""
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        with _connect(self.db_path) as conn:
            if board_id is not None:
                if table not in ("lists", "cards"):
                    raise ValueError(f"Table {table} has no board_id column")
                row = conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE board_id = ?", (board_id,)
                ).fetchone()
            else:
                row = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return row[0]

    def get_stats(self) -> Dict[str, int]:
        return {table: self.count(table) for table in TABLES}
