"""Trip persistence: PostgreSQL in production, SQLite for local development.

Each trip is stored as one JSON document plus a ``version`` counter. Every
successful save bumps the version; saving against a version that is no
longer current raises ConflictError instead of overwriting a newer trip.
"""

import os
import json
from datetime import datetime
from typing import Optional, List, Dict, Any
from contextlib import contextmanager

# Always import sqlite3 for local dev fallback
import sqlite3

# Try to import psycopg2 for production
try:
    import psycopg2
    import psycopg2.extras
    HAS_POSTGRES = True
except ImportError:
    HAS_POSTGRES = False

from agents.bookings.errors import ConflictError, NotFoundError, PersistenceError

# Database URL from environment (Render sets this automatically)
DATABASE_URL = os.environ.get("DATABASE_URL")

# Use PostgreSQL if available, otherwise SQLite for local development
USE_POSTGRES = HAS_POSTGRES and DATABASE_URL is not None

DB_PATH = os.environ.get("TRIPS_DB_PATH", os.path.join(os.path.dirname(__file__), "trips.db"))


def get_connection():
    """Get a database connection."""
    if USE_POSTGRES:
        # Render uses postgres:// but psycopg2 needs postgresql://
        url = DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return psycopg2.connect(url)
    else:
        conn = sqlite3.connect(DB_PATH)
        conn.row_factory = sqlite3.Row
        return conn


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _param(sql: str) -> str:
    """Switch ? placeholders to %s for psycopg2."""
    return sql.replace("?", "%s") if USE_POSTGRES else sql


def _now() -> str:
    return datetime.now().isoformat(sep=" ")


def _title_text(trip_data: Dict[str, Any]) -> str:
    title = trip_data.get("title")
    if isinstance(title, dict):
        return title.get("en") or title.get("it") or ""
    return title or ""


def _load_data(raw) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, (dict, list)):
        return raw  # Already parsed by psycopg2 for JSONB
    return json.loads(raw)


def init_db():
    """Initialize database tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        if USE_POSTGRES:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trips (
                    id VARCHAR(255) PRIMARY KEY,
                    title VARCHAR(255) NOT NULL DEFAULT '',
                    data JSONB NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        else:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trips (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    data TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

        print(f"[DB] Initialized {'PostgreSQL' if USE_POSTGRES else 'SQLite'} database")


def trip_id_exists(trip_id: str) -> bool:
    """Check if a trip id is taken."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(_param("SELECT 1 FROM trips WHERE id = ?"), (trip_id,))
        return cursor.fetchone() is not None


def get_trip_by_id(trip_id: str) -> Optional[Dict[str, Any]]:
    """Get a trip row: ``{id, title, trip_data, version, created_at, updated_at}``."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(_param("""
            SELECT id, title, data, version, created_at, updated_at
            FROM trips WHERE id = ?
        """), (trip_id,))
        row = cursor.fetchone()
        if not row:
            return None
        columns = ['id', 'title', 'trip_data', 'version', 'created_at', 'updated_at']
        trip = dict(zip(columns, tuple(row)))
        trip['trip_data'] = _load_data(trip['trip_data'])
        return trip


def list_trips() -> List[Dict[str, Any]]:
    """All trips, most recently updated first (without the full document)."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT id, title, data, version, updated_at
            FROM trips ORDER BY updated_at DESC, id
        """)
        trips = []
        for row in cursor.fetchall():
            trip_id, title, data, version, updated_at = tuple(row)
            data = _load_data(data)
            trips.append({
                'id': trip_id,
                'title': data.get('title') or title,
                'destination': data.get('destination'),
                'start_date': data.get('startDate'),
                'end_date': data.get('endDate'),
                'version': version,
                'updated_at': str(updated_at) if updated_at else None,
            })
        return trips


def add_trip(trip_data: Dict[str, Any]) -> int:
    """Insert a new trip. Returns its version (1).

    Raises PersistenceError if the id is taken or the insert fails.
    """
    trip_id = trip_data.get("id")
    if not trip_id:
        raise PersistenceError("Trip has no id")

    with get_db() as conn:
        cursor = conn.cursor()
        try:
            cursor.execute(_param("""
                INSERT INTO trips (id, title, data, version, created_at, updated_at)
                VALUES (?, ?, ?, 1, ?, ?)
            """), (
                trip_id,
                _title_text(trip_data),
                json.dumps(trip_data),
                _now(),
                _now(),
            ))
        except Exception as e:
            print(f"[DB] Error adding trip {trip_id}: {e}")
            raise PersistenceError(f"Failed to save trip {trip_id}") from e

    print(f"[DB] Added trip {trip_id}")
    return 1


def save_trip(trip_id: str, trip_data: Dict[str, Any], expected_version: int) -> int:
    """Replace a trip's document if it is still at ``expected_version``.

    Returns the new version. Raises NotFoundError if the trip is gone and
    ConflictError if another save got there first.
    """
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(_param("""
            UPDATE trips SET title = ?, data = ?, version = version + 1, updated_at = ?
            WHERE id = ? AND version = ?
        """), (
            _title_text(trip_data),
            json.dumps(trip_data),
            _now(),
            trip_id,
            expected_version,
        ))
        if cursor.rowcount > 0:
            return expected_version + 1

        cursor.execute(_param("SELECT version FROM trips WHERE id = ?"), (trip_id,))
        row = cursor.fetchone()

    if row is None:
        raise NotFoundError(f"Trip not found: {trip_id}")
    print(f"[DB] Version conflict on trip {trip_id}: expected {expected_version}, found {tuple(row)[0]}")
    raise ConflictError("Trip was modified by another request. Reload and try again.")


def rename_trip(trip_id: str, title: Dict[str, str], expected_version: Optional[int] = None) -> int:
    """Set the trip's bilingual title. Returns the new version."""
    trip = get_trip_by_id(trip_id)
    if trip is None:
        raise NotFoundError(f"Trip not found: {trip_id}")
    data = trip['trip_data']
    data['title'] = title
    version = trip['version'] if expected_version is None else expected_version
    return save_trip(trip_id, data, version)


def delete_trip(trip_id: str) -> bool:
    """Delete a trip."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(_param("DELETE FROM trips WHERE id = ?"), (trip_id,))
        return cursor.rowcount > 0
