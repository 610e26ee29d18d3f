"""
Persistence adapter for the widget's two storage scopes.

The session scope lives as long as the hosting tab/process and is kept in
memory. The durable scope survives restarts: values are sealed with AES-GCM
under a PBKDF2-derived key and kept in SQLite.

All values are strings; a missing key means "nothing pending".
"""

from pathlib import Path
from typing import Dict, Optional, Protocol
import logging
import os
import sqlite3

from Crypto.Cipher import AES
from Crypto.Hash import SHA256
from Crypto.Protocol.KDF import PBKDF2

from support_chat.core.config import AppConfig
from support_chat.core.errors import StorageError

logger = logging.getLogger(__name__)

# Durable keys
SESSION_CHAT_ID_KEY = "sessionChatId"
PREVIOUS_CHAT_ID_KEY = "previousChatId"
NEW_MESSAGES_AMOUNT_KEY = "newMessagesAmount"

# Session-scoped keys
TERMINATION_TIME_KEY = "terminationTime"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Dict-backed store for the session scope and for tests"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self):
        return list(self._data.keys())


class EncryptedStore:
    PBKDF2_ITERATIONS = 100000
    KEY_LENGTH = 32

    def __init__(self, storage_path: str, password: str):
        self.storage_path = Path(storage_path)
        self.db_path = self.storage_path / "widget_storage.db"
        self._key = self._derive_key(password)
        self._ensure_storage_exists()

    def _derive_key(self, password: str) -> bytes:
        salt_path = self.storage_path / ".salt"
        if salt_path.exists():
            salt = salt_path.read_bytes()
        else:
            salt = os.urandom(16)
            self.storage_path.mkdir(parents=True, exist_ok=True)
            salt_path.write_bytes(salt)
        return PBKDF2(
            password,
            salt,
            dkLen=self.KEY_LENGTH,
            count=self.PBKDF2_ITERATIONS,
            hmac_hash_module=SHA256,
        )

    def _ensure_storage_exists(self):
        try:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open durable storage at {self.db_path}: {e}")
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    key TEXT PRIMARY KEY,
                    nonce BLOB NOT NULL,
                    tag BLOB NOT NULL,
                    value BLOB NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def get(self, key: str) -> Optional[str]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT nonce, tag, value FROM entries WHERE key = ?", (key,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        nonce, tag, sealed = row
        cipher = AES.new(self._key, AES.MODE_GCM, nonce=nonce)
        try:
            return cipher.decrypt_and_verify(sealed, tag).decode("utf-8")
        except ValueError:
            logger.warning("Discarding undecryptable storage entry %r", key)
            return None

    def set(self, key: str, value: str) -> None:
        cipher = AES.new(self._key, AES.MODE_GCM)
        sealed, tag = cipher.encrypt_and_digest(str(value).encode("utf-8"))
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO entries (key, nonce, tag, value) VALUES (?, ?, ?, ?)",
                (key, cipher.nonce, tag, sealed),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {key}: {e}")
        finally:
            conn.close()

    def remove(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to remove {key}: {e}")
        finally:
            conn.close()


class PersistenceAdapter:
    """Typed access to the durable and session-scoped stores

    Writes are last-writer-wins; the stored values are hand-off breadcrumbs
    between page loads, never the source of truth.
    """

    def __init__(self, durable: KeyValueStore, session: KeyValueStore):
        self.durable = durable
        self.session = session

    # Durable scope
    def get_session_chat_id(self) -> Optional[str]:
        return self.durable.get(SESSION_CHAT_ID_KEY) or None

    def set_session_chat_id(self, chat_id: Optional[str]) -> None:
        if chat_id:
            self.durable.set(SESSION_CHAT_ID_KEY, chat_id)
        else:
            self.durable.remove(SESSION_CHAT_ID_KEY)

    def get_previous_chat_id(self) -> Optional[str]:
        return self.durable.get(PREVIOUS_CHAT_ID_KEY) or None

    def set_previous_chat_id(self, chat_id: Optional[str]) -> None:
        self.durable.set(PREVIOUS_CHAT_ID_KEY, chat_id or "")

    def remove_previous_chat_id(self) -> None:
        self.durable.remove(PREVIOUS_CHAT_ID_KEY)

    def get_new_messages_amount(self) -> int:
        raw = self.durable.get(NEW_MESSAGES_AMOUNT_KEY)
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    def set_new_messages_amount(self, amount: int) -> None:
        self.durable.set(NEW_MESSAGES_AMOUNT_KEY, str(amount))

    def clear_session_keys(self) -> None:
        """Forget the active chat and its unread counter."""
        self.durable.remove(SESSION_CHAT_ID_KEY)
        self.durable.remove(NEW_MESSAGES_AMOUNT_KEY)

    def clear_resume_markers(self) -> None:
        """Forget everything a reload could resume from."""
        self.clear_session_keys()
        self.durable.remove(PREVIOUS_CHAT_ID_KEY)

    # Session scope
    def get_termination_time(self) -> Optional[str]:
        return self.session.get(TERMINATION_TIME_KEY) or None

    def set_termination_time(self, timestamp: str) -> None:
        self.session.set(TERMINATION_TIME_KEY, timestamp)

    def remove_termination_time(self) -> None:
        self.session.remove(TERMINATION_TIME_KEY)


def open_persistence(cfg: AppConfig) -> PersistenceAdapter:
    """Durable store under the configured directory, fresh in-memory session scope."""
    durable = EncryptedStore(str(cfg.resolved_storage_dir()), cfg.storage_password)
    return PersistenceAdapter(durable=durable, session=MemoryStore())
