"""Database connection management."""
import sqlite3
import os
from pathlib import Path
from contextlib import contextmanager
from typing import Generator
from cryptofolio.core.config import get_settings
from cryptofolio.core.logging import get_logger
from cryptofolio.core.time import now_iso

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

REQUIRED_COLUMNS = {
    "users": ["user_id", "email", "password_hash", "created_at", "last_login_at"],
    "portfolio_entries": ["entry_id", "owner_id", "coin_id", "coin_name", "amount",
                          "avg_buy_price", "buy_date", "created_at"],
    "tracked_coins": ["owner_id", "coin_id", "coin_name", "created_at"],
    "chat_turns": ["turn_id", "owner_id", "role", "content", "context_json", "created_at"],
}


def _parse_db_url(url: str) -> str:
    """Parse DATABASE_URL to SQLite file path."""
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "")
    elif url.startswith("sqlite://"):
        return url.replace("sqlite://", "")
    else:
        return url


@contextmanager
def get_conn() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection context manager."""
    settings = get_settings()
    db_path = _parse_db_url(settings.database_url)

    # Ensure directory exists
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA busy_timeout = 30000")
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def validate_schema():
    """Check that the tables have the expected columns.

    Returns (ok, missing) where ok=True when all tables/columns exist,
    and missing is a dict of table -> list of missing columns.
    """
    missing_map = {}
    try:
        with get_conn() as conn:
            cursor = conn.cursor()
            for table, expected_cols in REQUIRED_COLUMNS.items():
                cursor.execute(f"PRAGMA table_info({table})")
                actual_cols = {row[1] for row in cursor.fetchall()}
                if not actual_cols:
                    missing_map[table] = expected_cols
                    logger.warning("Schema validation: table '%s' does not exist", table)
                    continue
                missing = [c for c in expected_cols if c not in actual_cols]
                if missing:
                    missing_map[table] = missing
                    logger.warning("Schema validation: table '%s' missing columns: %s", table, missing)
    except sqlite3.Error as e:
        logger.warning("Schema validation failed: %s", str(e)[:200])
        return False, {"_error": [str(e)[:200]]}

    return len(missing_map) == 0, missing_map


def _applied_migrations(conn: sqlite3.Connection) -> list:
    cursor = conn.cursor()
    cursor.execute("SELECT filename FROM schema_migrations ORDER BY id ASC")
    return [row["filename"] for row in cursor.fetchall()]


def get_schema_status():
    """Return a dict describing current DB path, schema health, and migration status.

    Used by the health endpoint and startup logging.
    """
    settings = get_settings()
    db_path = os.path.abspath(_parse_db_url(settings.database_url))

    result = {
        "db_path": db_path,
        "schema_ok": False,
        "applied_migrations": [],
        "pending_migrations": [],
        "missing_columns": {},
    }

    try:
        with get_conn() as conn:
            result["applied_migrations"] = _applied_migrations(conn)
    except sqlite3.OperationalError:
        # schema_migrations does not exist yet
        pass

    all_files = sorted(f.name for f in MIGRATIONS_DIR.glob("*.sql"))
    applied_set = set(result["applied_migrations"])
    result["pending_migrations"] = [f for f in all_files if f not in applied_set]

    schema_ok, missing = validate_schema()
    result["schema_ok"] = schema_ok
    result["missing_columns"] = missing

    return result


def init_db():
    """Initialize database with migrations (idempotent).

    Raises RuntimeError if migrations directory is not found.
    """
    if not MIGRATIONS_DIR.exists():
        raise RuntimeError(
            f"Migrations directory not found: {MIGRATIONS_DIR}. "
            "Cannot start without schema."
        )

    bootstrap_migration = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        filename TEXT NOT NULL UNIQUE,
        applied_at TEXT NOT NULL DEFAULT (datetime('now'))
    );
    """

    migration_files = sorted(f.name for f in MIGRATIONS_DIR.glob("*.sql"))

    with get_conn() as conn:
        conn.executescript(bootstrap_migration)
        applied = set(_applied_migrations(conn))

        for migration_file in migration_files:
            if migration_file in applied:
                logger.debug(f"Migration {migration_file} already applied, skipping")
                continue

            migration_sql = (MIGRATIONS_DIR / migration_file).read_text(encoding="utf-8")
            try:
                conn.executescript(migration_sql)
                conn.execute(
                    "INSERT INTO schema_migrations (filename, applied_at) VALUES (?, ?)",
                    (migration_file, now_iso())
                )
                conn.commit()
                logger.info(f"Applied migration: {migration_file}")
            except sqlite3.Error as e:
                logger.error(f"Failed to apply migration {migration_file}: {e}")
                raise

    schema_ok, missing = validate_schema()
    settings = get_settings()
    logger.info(
        "DB: %s | Migrations: %d | Schema: %s",
        os.path.abspath(_parse_db_url(settings.database_url)),
        len(migration_files),
        "OK" if schema_ok else f"MISSING {missing}"
    )
