# expense_pwa/db.py
"""
Local database layer.

Every collection is a SQLite table holding one JSON document per row, keyed by
an AUTOINCREMENT id so identifiers are never reused. Secondary lookup fields
are expression indexes over the document and are declared per schema version
in the same compact form the browser store used ("++id, type, category").

The user version pragma records which schema version the file is at;
``init_db`` applies the missing versions in order, running each version's
upgrade hook once.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime

from flask import current_app, g

from .errors import StorageError, StorageUnavailableError

logger = logging.getLogger("expense-pwa")

SCHEMA_VERSIONS = {
    1: {
        "transactions": "++id, type, category, date, accountId",
        "accounts": "++id, name, type",
    },
    2: {
        "transactions": "++id, type, category, date, accountId, amount, createdAt",
        "accounts": "++id, name, type, balance, isDefault",
        "categories": "++id, name, type, isDefault",
    },
}
LATEST_VERSION = max(SCHEMA_VERSIONS)

# Fields stored as ISO strings and handed back as datetime objects
DATE_FIELDS = {
    "transactions": ("date", "createdAt", "updatedAt"),
    "accounts": ("createdAt",),
    "categories": ("createdAt",),
}

AUTH_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    password_hash TEXT NOT NULL,
    level TEXT NOT NULL DEFAULT 'registered',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    message TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL DEFAULT 'system',
    timestamp TEXT NOT NULL,
    read INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications (user_id, timestamp);

CREATE TABLE IF NOT EXISTS feature_overrides (
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feature_id TEXT NOT NULL,
    is_enabled INTEGER NOT NULL,
    PRIMARY KEY (user_id, feature_id)
);
"""


def parse_stores(declaration):
    """Split a store declaration into its primary key and index fields."""
    fields = [f.strip() for f in declaration.split(",") if f.strip()]
    if not fields or not fields[0].startswith("++"):
        raise ValueError(f"Store declaration must start with an auto key: {declaration!r}")
    return fields[0][2:], tuple(fields[1:])


def _encode(value):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_record(record):
    """Copy of a record safe for JSON responses (datetimes as ISO strings)."""
    return {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in record.items()}


def _index_value(value):
    # json_extract yields 1/0 for booleans and the stored text for dates
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class Table:
    """One record collection of the local database."""

    def __init__(self, db, name, primary_key, indexes, date_fields=()):
        self._db = db
        self.name = name
        self.primary_key = primary_key
        self.indexes = indexes
        self.date_fields = date_fields

    def _decode(self, row):
        record = json.loads(row["data"])
        for field in self.date_fields:
            value = record.get(field)
            if isinstance(value, str):
                try:
                    record[field] = datetime.fromisoformat(value)
                except ValueError:
                    pass
        record[self.primary_key] = row["id"]
        return record

    def _dumps(self, record):
        data = {k: v for k, v in record.items() if k != self.primary_key}
        return json.dumps(data, default=_encode)

    def _check_index(self, field):
        if field not in self.indexes:
            raise ValueError(f"'{field}' is not an indexed field of {self.name}")

    def add(self, record):
        """Insert a record and return its newly assigned id."""
        cur = self._db.execute_write(
            f"INSERT INTO {self.name} (data) VALUES (?)", (self._dumps(record),)
        )
        return cur.lastrowid

    def bulk_add(self, records):
        with self._db.transaction():
            return [self.add(record) for record in records]

    def get(self, record_id):
        row = self._db.execute(
            f"SELECT id, data FROM {self.name} WHERE id = ?", (record_id,)
        ).fetchone()
        return self._decode(row) if row else None

    def where(self, field, value):
        """Records whose indexed ``field`` equals ``value``, oldest first."""
        if field == self.primary_key:
            record = self.get(value)
            return [record] if record else []
        self._check_index(field)
        rows = self._db.execute(
            f"SELECT id, data FROM {self.name} "
            f"WHERE json_extract(data, '$.{field}') = ? ORDER BY id",
            (_index_value(value),),
        ).fetchall()
        return [self._decode(r) for r in rows]

    def between(self, field, lower, upper):
        """Records with ``lower <= field < upper``."""
        self._check_index(field)
        rows = self._db.execute(
            f"SELECT id, data FROM {self.name} "
            f"WHERE json_extract(data, '$.{field}') >= ? "
            f"AND json_extract(data, '$.{field}') < ? ORDER BY id",
            (_index_value(lower), _index_value(upper)),
        ).fetchall()
        return [self._decode(r) for r in rows]

    def to_list(self, order_by=None, reverse=False, limit=None):
        if order_by is None:
            order = "id"
        else:
            self._check_index(order_by)
            order = f"json_extract(data, '$.{order_by}')"
        sql = f"SELECT id, data FROM {self.name} ORDER BY {order} {'DESC' if reverse else 'ASC'}, id {'DESC' if reverse else 'ASC'}"
        args = ()
        if limit is not None:
            sql += " LIMIT ?"
            args = (int(limit),)
        return [self._decode(r) for r in self._db.execute(sql, args).fetchall()]

    def count(self):
        return self._db.execute(f"SELECT COUNT(*) FROM {self.name}").fetchone()[0]

    def update(self, record_id, changes):
        """Merge ``changes`` into a record. Returns 1 if updated, 0 if missing."""
        with self._db.transaction():
            record = self.get(record_id)
            if record is None:
                return 0
            record.update({k: v for k, v in changes.items() if k != self.primary_key})
            self._db.execute_write(
                f"UPDATE {self.name} SET data = ? WHERE id = ?",
                (self._dumps(record), record_id),
            )
        return 1

    def delete(self, record_id):
        self._db.execute_write(f"DELETE FROM {self.name} WHERE id = ?", (record_id,))

    def clear(self):
        self._db.execute_write(f"DELETE FROM {self.name}")


class ExpenseTrackerDB:
    """The local store: one ``Table`` attribute per declared collection."""

    def __init__(self, conn, version=LATEST_VERSION):
        self.conn = conn
        self.version = version
        self._depth = 0
        self.tables = {}
        for name, declaration in SCHEMA_VERSIONS[version].items():
            primary_key, indexes = parse_stores(declaration)
            table = Table(self, name, primary_key, indexes, DATE_FIELDS.get(name, ()))
            self.tables[name] = table
            setattr(self, name, table)

    def execute(self, sql, args=()):
        try:
            return self.conn.execute(sql, args)
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc

    def execute_write(self, sql, args=()):
        cur = self.execute(sql, args)
        if self._depth == 0:
            self.conn.commit()
        return cur

    @contextmanager
    def transaction(self):
        """
        Group writes so they commit or roll back together.

        Blocks nest: an inner block runs under a savepoint, so an inner failure
        that the caller catches only discards the inner block's writes.
        """
        savepoint = f"sp_{self._depth}"
        if self._depth == 0:
            if not self.conn.in_transaction:
                self.execute("BEGIN")
        else:
            self.execute(f"SAVEPOINT {savepoint}")
        self._depth += 1
        try:
            yield self
        except Exception:
            self._depth -= 1
            if self._depth == 0:
                self.conn.rollback()
            elif self.conn.in_transaction:
                self.execute(f"ROLLBACK TO {savepoint}")
                self.execute(f"RELEASE {savepoint}")
            raise
        self._depth -= 1
        if self._depth == 0:
            self.conn.commit()
        else:
            self.execute(f"RELEASE {savepoint}")


# ---------------- Schema migrations ----------------
def _create_stores(conn, stores):
    for name, declaration in stores.items():
        _, indexes = parse_stores(declaration)
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {name} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, data TEXT NOT NULL)"
        )
        for field in indexes:
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{name}_{field} "
                f"ON {name} (json_extract(data, '$.{field}'))"
            )


def _upgrade_to_v2(conn):
    now = datetime.now().isoformat()
    conn.execute(
        "UPDATE transactions SET data = json_set(data, "
        "'$.createdAt', COALESCE(json_extract(data, '$.date'), ?), "
        "'$.updatedAt', COALESCE(json_extract(data, '$.date'), ?))",
        (now, now),
    )
    conn.execute("UPDATE accounts SET data = json_set(data, '$.createdAt', ?)", (now,))


UPGRADES = {2: _upgrade_to_v2}


def get_schema_version(conn):
    return conn.execute("PRAGMA user_version").fetchone()[0]


def migrate(conn, target=LATEST_VERSION):
    """Bring the file up to ``target``; returns the resulting version."""
    current = get_schema_version(conn)
    for version in sorted(v for v in SCHEMA_VERSIONS if current < v <= target):
        _create_stores(conn, SCHEMA_VERSIONS[version])
        upgrade = UPGRADES.get(version)
        if upgrade:
            upgrade(conn)
        conn.execute(f"PRAGMA user_version = {int(version)}")
        conn.commit()
        logger.info(f"Database schema upgraded to version {version}")
        current = version
    return current


# ---------------- Flask integration ----------------
def connect(path):
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
    except (sqlite3.Error, OSError) as exc:
        raise StorageUnavailableError(f"Unable to open database at {path}: {exc}") from exc
    return conn


def get_db():
    db = getattr(g, "_database", None)
    if db is None:
        error = current_app.config.get("DB_INIT_ERROR")
        if error:
            raise StorageUnavailableError(error)
        db = g._database = connect(current_app.config["DB_PATH"])
    return db


def get_store():
    store = getattr(g, "_store", None)
    if store is None:
        store = g._store = ExpenseTrackerDB(get_db())
    return store


def close_db(exception=None):
    g.pop("_store", None)
    db = g.pop("_database", None)
    if db is not None:
        try:
            db.close()
        except sqlite3.Error:
            logger.exception("Error closing DB connection")


def query_db(query, args=(), one=False):
    cur = get_db().execute(query, args)
    rv = cur.fetchall()
    cur.close()
    return (rv[0] if rv else None) if one else rv


def execute_db(query, args=()):
    conn = get_db()
    cur = conn.cursor()
    cur.execute(query, args)
    conn.commit()
    last = cur.lastrowid
    cur.close()
    return last


def init_db(path=None):
    """
    Create or upgrade the database file. Idempotent, safe at every startup.

    Raises StorageUnavailableError when the file cannot be opened or migrated.
    """
    path = path or current_app.config["DB_PATH"]
    conn = connect(path)
    try:
        conn.executescript(AUTH_SQL)
        return migrate(conn)
    except sqlite3.Error as exc:
        raise StorageUnavailableError(f"Failed to initialize database at {path}: {exc}") from exc
    finally:
        conn.close()


def get_db_health():
    conn = get_db()
    present = {
        r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    expected = set(SCHEMA_VERSIONS[LATEST_VERSION]) | {"users", "notifications", "feature_overrides"}
    missing = sorted(expected - present)
    return {
        "ok": not missing,
        "schema_version": get_schema_version(conn),
        "missing_tables": missing,
    }
