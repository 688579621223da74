import logging
import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from exceptions import StorageError

logger = logging.getLogger(__name__)

# SQLite has no decimal type; money is kept as its exact string form
sqlite3.register_adapter(Decimal, str)


# Starter catalog: (name, category, is_core, unit)
SEED_ITEMS = [
    ('Milk (Full cream)', 'Coffee & Beverages', True, 'cartons'),
    ('Milk (Almond)', 'Coffee & Beverages', True, 'cartons'),
    ('Coffee beans', 'Coffee & Beverages', True, 'kg'),
    ('Sugar', 'Coffee & Beverages', False, 'bags'),
    ('Syrups', 'Coffee & Beverages', False, 'bottles'),
    ('Bread', 'Kitchen Items', True, 'loaves'),
    ('Eggs', 'Kitchen Items', True, 'trays'),
    ('Cheese', 'Kitchen Items', False, 'blocks'),
    ('Butter', 'Kitchen Items', False, 'packs'),
    ('Tomatoes', 'Kitchen Items', False, 'kg'),
    ('Muffins', 'Bakery Items', False, 'units'),
    ('Croissants', 'Bakery Items', False, 'units'),
    ('Cookies', 'Bakery Items', False, 'units'),
]

# Column types differ per dialect; everything else in the DDL is shared
SCHEMA = [
    # 1. items
    '''CREATE TABLE IF NOT EXISTS items (
        id {id_type},
        name TEXT NOT NULL,
        category TEXT NOT NULL,
        min_level INTEGER DEFAULT 0,
        is_core {bool_type} DEFAULT {false},
        unit TEXT DEFAULT 'units'
    )''',
    # 2. daily_checks: one row per (date, item), replaced wholesale on submit
    '''CREATE TABLE IF NOT EXISTS daily_checks (
        id {id_type},
        date TEXT NOT NULL,
        item_id INTEGER NOT NULL,
        status TEXT NOT NULL CHECK (status IN ('enough', 'low', 'critical')),
        quantity_needed INTEGER DEFAULT 0,
        is_urgent {bool_type} DEFAULT {false},
        checked_at {timestamp_type},
        staff_name TEXT,
        FOREIGN KEY(item_id) REFERENCES items(id) ON DELETE CASCADE
    )''',
    # 3. reports
    '''CREATE TABLE IF NOT EXISTS reports (
        id {id_type},
        date TEXT NOT NULL,
        staff_name TEXT NOT NULL,
        submitted_at {timestamp_type},
        status TEXT DEFAULT 'pending'
    )''',
    # 4. purchases
    '''CREATE TABLE IF NOT EXISTS purchases (
        id {id_type},
        date TEXT NOT NULL,
        item_id INTEGER NOT NULL,
        quantity INTEGER NOT NULL,
        cost {money_type} DEFAULT 0,
        store TEXT,
        purchased_at {timestamp_type},
        FOREIGN KEY(item_id) REFERENCES items(id) ON DELETE CASCADE
    )''',
    'CREATE INDEX IF NOT EXISTS idx_daily_checks_date ON daily_checks (date)',
    'CREATE INDEX IF NOT EXISTS idx_purchases_date ON purchases (date)',
]


class Session:
    """Cursor wrapper handed out by Backend.transaction()."""

    def __init__(self, backend, cursor):
        self._backend = backend
        self._cursor = cursor

    def execute(self, query, args=()):
        self._cursor.execute(self._backend.prepare(query), args)
        return self

    def all(self):
        return [dict(r) for r in self._cursor.fetchall()]

    def one(self):
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    @property
    def rowcount(self):
        return self._cursor.rowcount

    def insert(self, query, args=()):
        """Run an INSERT and return the generated id."""
        return self._backend.insert_id(self._cursor, query, args)


class Backend:
    name = None
    driver_errors = ()
    # errors after which the connection must not be reused
    connection_errors = ()
    dialect = {}

    def connect(self):
        raise NotImplementedError

    def cursor(self, conn):
        return conn.cursor()

    def release(self, conn, discard=False):
        conn.close()

    def close(self):
        pass

    def prepare(self, query):
        return query

    def insert_id(self, cursor, query, args):
        raise NotImplementedError

    def _rollback(self, conn):
        """Roll back; return False when the connection itself is unusable."""
        try:
            conn.rollback()
        except self.driver_errors as e:
            logger.error("%s rollback failed: %s", self.name, e)
            return False
        return True

    @contextmanager
    def transaction(self):
        """Commit on success, roll back on any error, always release the connection."""
        try:
            conn = self.connect()
        except self.driver_errors as e:
            logger.error("Could not connect to %s database: %s", self.name, e)
            raise StorageError(f"Could not connect to the database: {e}",
                               code="connect_failed") from e

        cur = None
        discard = False
        try:
            cur = self.cursor(conn)
            yield Session(self, cur)
            conn.commit()
        except self.driver_errors as e:
            rolled_back = self._rollback(conn)
            discard = not rolled_back or isinstance(e, self.connection_errors)
            logger.error("%s transaction rolled back: %s", self.name, e)
            raise StorageError(f"Database operation failed: {e}",
                               code="query_failed") from e
        except Exception:
            discard = not self._rollback(conn)
            raise
        finally:
            if cur is not None:
                try:
                    cur.close()
                except self.driver_errors as e:
                    logger.warning("%s cursor close failed: %s", self.name, e)
                    discard = True
            self.release(conn, discard=discard)


class SqliteBackend(Backend):
    name = "sqlite"
    driver_errors = (sqlite3.Error,)
    dialect = {
        "id_type": "INTEGER PRIMARY KEY AUTOINCREMENT",
        "bool_type": "INTEGER",
        "false": "0",
        "money_type": "TEXT",
        "timestamp_type": "TEXT",
    }

    def __init__(self, path, timeout=20):
        self.path = Path(path)
        self.timeout = timeout

    def connect(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # timeout: wait on a locked database instead of failing immediately
        conn = sqlite3.connect(str(self.path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def insert_id(self, cursor, query, args):
        cursor.execute(query, args)
        return cursor.lastrowid


class PostgresBackend(Backend):
    name = "postgresql"
    driver_errors = (psycopg2.Error,)
    connection_errors = (psycopg2.InterfaceError, psycopg2.OperationalError)
    dialect = {
        "id_type": "SERIAL PRIMARY KEY",
        "bool_type": "BOOLEAN",
        "false": "FALSE",
        "money_type": "NUMERIC(12, 2)",
        "timestamp_type": "TIMESTAMP",
    }

    def __init__(self, dsn, sslmode="require", pool_size=5):
        try:
            self._pool = ThreadedConnectionPool(1, pool_size, dsn, sslmode=sslmode)
        except psycopg2.Error as e:
            logger.error("Could not open PostgreSQL pool: %s", e)
            raise StorageError(f"Could not connect to the database: {e}",
                               code="connect_failed") from e

    def connect(self):
        return self._pool.getconn()

    def cursor(self, conn):
        return conn.cursor(cursor_factory=RealDictCursor)

    def release(self, conn, discard=False):
        # broken connections are closed instead of going back to the pool
        self._pool.putconn(conn, close=discard or bool(conn.closed))

    def close(self):
        self._pool.closeall()

    def prepare(self, query):
        return query.replace('?', '%s')

    def insert_id(self, cursor, query, args):
        cursor.execute(self.prepare(query) + " RETURNING id", args)
        return cursor.fetchone()["id"]


# --- Database initialisation ---

def init_db(backend, seed=True):
    with backend.transaction() as db:
        for statement in SCHEMA:
            db.execute(statement.format(**backend.dialect))

        if not seed:
            return
        count = db.execute("SELECT COUNT(*) AS count FROM items").one()["count"]
        if count == 0:
            for name, category, is_core, unit in SEED_ITEMS:
                db.insert("INSERT INTO items (name, category, is_core, unit) VALUES (?, ?, ?, ?)",
                          (name, category, is_core, unit))
            logger.info("Seeded %d starter items", len(SEED_ITEMS))


def open_backend(config):
    """Pick the storage backend once, from configuration."""
    if config.get("DATABASE_URL"):
        logger.info("Using PostgreSQL backend")
        return PostgresBackend(
            config["DATABASE_URL"],
            sslmode=config.get("DATABASE_SSLMODE", "require"),
            pool_size=config.get("DATABASE_POOL_SIZE", 5),
        )
    logger.info("Using SQLite backend at %s", config["SQLITE_PATH"])
    return SqliteBackend(config["SQLITE_PATH"], timeout=config.get("SQLITE_TIMEOUT", 20))


# Initialise the database from the command line
if __name__ == '__main__':
    from config import Config

    settings = {key: getattr(Config, key) for key in dir(Config) if key.isupper()}
    backend = open_backend(settings)
    try:
        init_db(backend, seed=settings["SEED_CATALOG"])
    finally:
        backend.close()
    print(f"Database initialized ({backend.name}).")
