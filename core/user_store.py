"""
User Store Module

This module handles persistence of registered users and their reference
face descriptors.

Data is stored as:
- SQLite database: user records and the verification audit log
- .npz files: cached reference descriptor per user

The UserStore class provides:
- create_user / get_user / get_user_by_email / list_users / delete_user
- save_reference_descriptor / load_reference_descriptor
- log_verification / get_verification_logs / get_stats

Usage:
    from core.user_store import UserStore

    store = UserStore(descriptors_dir="storage/descriptors", db_path="storage/db.sqlite")
    user = store.create_user("ada@example.com", "Ada", "Lovelace", "/path/to/ref.jpg")
    store.save_reference_descriptor(user.user_id, descriptor)
"""

import sqlite3
import threading
import uuid
import logging
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

import numpy as np

from core.descriptors import as_descriptor
from core.errors import DuplicateUserError, StorageError, UserNotFoundError

# Setup logging
logger = logging.getLogger(__name__)


@dataclass
class UserRecord:
    """
    A registered user.

    Attributes:
        user_id: Unique identifier (e.g., "usr_a1b2c3d4").
        email: Login key, unique across users.
        first_name: Given name.
        last_name: Family name.
        facial_image: Location of the reference image (path or URL).
        registered_at: ISO timestamp of registration.
    """

    user_id: str
    email: str
    first_name: str
    last_name: str
    facial_image: str
    registered_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "UserRecord":
        return cls(
            user_id=row["user_id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            facial_image=row["facial_image"],
            registered_at=row["registered_at"],
        )


def generate_user_id() -> str:
    """
    Generate a unique user ID.

    Format: "usr_" followed by 8 random hex characters.
    """
    return f"usr_{uuid.uuid4().hex[:8]}"


class UserStore:
    """
    Manages user records and reference descriptors.

    One SQLite connection is shared by all threads and guarded by a lock,
    because API handlers run in a worker threadpool.

    Attributes:
        descriptors_dir: Directory where reference descriptor .npz files live.
        db_path: Path to the SQLite database file.
    """

    def __init__(self, descriptors_dir: str, db_path: str):
        """
        Initialize the UserStore.

        Creates the descriptor directory and database if they don't exist.

        Args:
            descriptors_dir: Path to directory for reference descriptors.
            db_path: Path to SQLite database file.
        """
        self.descriptors_dir = Path(descriptors_dir)
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

        self.descriptors_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

        logger.info(f"UserStore initialized: descriptors={self.descriptors_dir}, db={self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the SQLite connection (lazy)."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self) -> None:
        """
        Initialize the SQLite database schema.

        Creates tables if they don't exist:
        - users: user records and reference image locations
        - verification_logs: verification attempt history
        """
        with self._lock:
            try:
                conn = self._get_connection()
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS users (
                        user_id TEXT PRIMARY KEY,
                        email TEXT NOT NULL UNIQUE,
                        first_name TEXT NOT NULL,
                        last_name TEXT NOT NULL,
                        facial_image TEXT NOT NULL,
                        registered_at TEXT NOT NULL
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS verification_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT,
                        timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        verdict TEXT NOT NULL,
                        rectangle_motion REAL,
                        descriptor_shift REAL,
                        reference_distance REAL,
                        processing_time_ms INTEGER,
                        FOREIGN KEY (user_id) REFERENCES users(user_id)
                    )
                """)

                conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize database: {e}") from e

        logger.debug("Database schema initialized")

    def _get_descriptor_path(self, user_id: str) -> Path:
        return self.descriptors_dir / f"{user_id}.npz"

    def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        facial_image: str,
        user_id: Optional[str] = None,
    ) -> UserRecord:
        """
        Register a new user.

        Args:
            email: Unique login key.
            first_name: Given name.
            last_name: Family name.
            facial_image: Location of the stored reference image.
            user_id: Optional explicit ID (generated when omitted).

        Returns:
            The stored UserRecord.

        Raises:
            DuplicateUserError: If the email is already registered.
            StorageError: On any other database failure.
        """
        record = UserRecord(
            user_id=user_id or generate_user_id(),
            email=email,
            first_name=first_name,
            last_name=last_name,
            facial_image=facial_image,
            registered_at=datetime.now().isoformat(),
        )

        with self._lock:
            try:
                conn = self._get_connection()
                conn.execute("""
                    INSERT INTO users (user_id, email, first_name, last_name, facial_image, registered_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    record.user_id,
                    record.email,
                    record.first_name,
                    record.last_name,
                    record.facial_image,
                    record.registered_at,
                ))
                conn.commit()
            except sqlite3.IntegrityError as e:
                self._get_connection().rollback()
                raise DuplicateUserError(f"Email already exists: {email}") from e
            except sqlite3.Error as e:
                raise StorageError(f"Failed to register user: {e}") from e

        logger.info(f"Registered user {record.user_id} ({record.email})")
        return record

    def _fetch_one(self, query: str, params: tuple) -> Optional[sqlite3.Row]:
        with self._lock:
            try:
                cursor = self._get_connection().execute(query, params)
                return cursor.fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Database error: {e}") from e

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        """Get a user by ID, or None if not found."""
        row = self._fetch_one("SELECT * FROM users WHERE user_id = ?", (user_id,))
        return UserRecord.from_row(row) if row is not None else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        """Get a user by email, or None if not found."""
        row = self._fetch_one("SELECT * FROM users WHERE email = ?", (email,))
        return UserRecord.from_row(row) if row is not None else None

    def user_exists(self, user_id: str) -> bool:
        """Check if a user with the given ID exists."""
        return self._fetch_one("SELECT 1 FROM users WHERE user_id = ?", (user_id,)) is not None

    def list_users(self) -> List[UserRecord]:
        """List all registered users, newest first."""
        with self._lock:
            try:
                cursor = self._get_connection().execute(
                    "SELECT * FROM users ORDER BY registered_at DESC"
                )
                rows = cursor.fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Database error: {e}") from e

        return [UserRecord.from_row(row) for row in rows]

    def delete_user(self, user_id: str) -> Optional[UserRecord]:
        """
        Delete a user, their logs and their cached reference descriptor.

        Returns:
            The deleted record, or None if the user was not found.
        """
        with self._lock:
            record = self.get_user(user_id)
            if record is None:
                logger.warning(f"Cannot delete: user {user_id} not found")
                return None

            try:
                conn = self._get_connection()
                conn.execute("DELETE FROM verification_logs WHERE user_id = ?", (user_id,))
                conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
                conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to delete user {user_id}: {e}") from e

        descriptor_path = self._get_descriptor_path(user_id)
        if descriptor_path.exists():
            try:
                descriptor_path.unlink()
            except OSError as e:
                logger.warning(f"Failed to delete descriptor file {descriptor_path}: {e}")

        logger.info(f"Deleted user {user_id}")
        return record

    def save_reference_descriptor(self, user_id: str, descriptor: np.ndarray) -> str:
        """
        Cache a user's reference descriptor.

        Returns:
            Path to the saved .npz file.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        if not self.user_exists(user_id):
            raise UserNotFoundError(f"User {user_id} not found")

        path = self._get_descriptor_path(user_id)
        try:
            np.savez_compressed(str(path), descriptor=np.asarray(descriptor, dtype=np.float32))
        except OSError as e:
            raise StorageError(f"Failed to save descriptor for {user_id}: {e}") from e

        logger.debug(f"Saved reference descriptor for {user_id}")
        return str(path)

    def load_reference_descriptor(self, user_id: str) -> Optional[np.ndarray]:
        """
        Load a user's cached reference descriptor.

        Returns:
            Read-only descriptor, or None if nothing is cached.
        """
        path = self._get_descriptor_path(user_id)
        if not path.exists():
            return None

        try:
            with np.load(str(path)) as data:
                return as_descriptor(data["descriptor"])
        except (OSError, KeyError, ValueError) as e:
            logger.error(f"Failed to load descriptor for {user_id}: {e}")
            return None

    def log_verification(
        self,
        user_id: Optional[str],
        verdict: str,
        rectangle_motion: Optional[float] = None,
        descriptor_shift: Optional[float] = None,
        reference_distance: Optional[float] = None,
        processing_time_ms: int = 0,
    ) -> int:
        """
        Log a verification attempt for auditing.

        Returns:
            The log entry ID.
        """
        with self._lock:
            try:
                conn = self._get_connection()
                cursor = conn.execute("""
                    INSERT INTO verification_logs
                    (user_id, verdict, rectangle_motion, descriptor_shift,
                     reference_distance, processing_time_ms)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    user_id,
                    verdict,
                    rectangle_motion,
                    descriptor_shift,
                    reference_distance,
                    processing_time_ms,
                ))
                conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to log verification: {e}") from e

        log_id = cursor.lastrowid
        logger.debug(f"Logged verification attempt: id={log_id}, user={user_id}, verdict={verdict}")
        return log_id

    def get_verification_logs(
        self,
        user_id: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """
        Get verification attempt logs, newest first.

        Args:
            user_id: Filter by user ID (optional).
            limit: Maximum number of entries to return.
        """
        if user_id:
            query = "SELECT * FROM verification_logs WHERE user_id = ? ORDER BY id DESC LIMIT ?"
            params = (user_id, limit)
        else:
            query = "SELECT * FROM verification_logs ORDER BY id DESC LIMIT ?"
            params = (limit,)

        with self._lock:
            try:
                rows = self._get_connection().execute(query, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Database error: {e}") from e

        return [dict(row) for row in rows]

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary with:
            - total_users: Number of registered users
            - total_verifications: Number of verification attempts
            - accepted_verifications: Number of accepted verifications
        """
        users = self._fetch_one("SELECT COUNT(*) AS count FROM users", ())
        logs = self._fetch_one(
            "SELECT COUNT(*) AS total, SUM(verdict = 'accepted') AS accepted FROM verification_logs", ()
        )

        return {
            "total_users": users["count"] or 0,
            "total_verifications": logs["total"] or 0,
            "accepted_verifications": int(logs["accepted"] or 0),
        }

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Database connection closed")

    def __del__(self):
        """Clean up resources on deletion."""
        self.close()


# Singleton instance for the store
_store_instance: Optional[UserStore] = None


def get_user_store(
    descriptors_dir: Optional[str] = None,
    db_path: Optional[str] = None
) -> UserStore:
    """
    Get or create the singleton UserStore instance.

    Args:
        descriptors_dir: Reference descriptor directory. If None, uses config.
        db_path: Path to SQLite database. If None, uses config.
    """
    global _store_instance

    if _store_instance is None:
        if descriptors_dir is None or db_path is None:
            from core.config import get_storage_config, get_project_root

            storage_config = get_storage_config()
            project_root = get_project_root()

            if descriptors_dir is None:
                descriptors_dir = str(project_root / storage_config["descriptors_dir"])
            if db_path is None:
                db_path = str(project_root / storage_config["db_path"])

        _store_instance = UserStore(descriptors_dir, db_path)

    return _store_instance
