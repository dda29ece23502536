import sqlite3, logging, secrets
from functools import lru_cache
from typing import Optional
from urllib.parse import urlencode
from config import app_cfg

log = logging.getLogger(__name__)

TOKEN_KEY = "jwt_token"
BROWSER_PARAM = "device"

class KeyValueStore:
    """Persisted key-value slots in a local SQLite file.

    Writers overwrite a key wholesale and readers read it wholesale, so
    last write wins. Also satisfies the storage protocol the backend auth
    client expects (``get_item``/``set_item``/``remove_item``), which keeps
    its session and PKCE verifier alive across Streamlit reruns. The app
    only ever hands out per-browser views of it (see ``scoped``).
    """

    def __init__(self, path: str):
        self.path = path
        self._init()

    def _conn(self):
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init(self):
        with self._conn() as conn:
            conn.executescript("""
            PRAGMA journal_mode=WAL;
            CREATE TABLE IF NOT EXISTS kv(
              key TEXT PRIMARY KEY, value TEXT NOT NULL,
              updated_at TEXT DEFAULT (datetime('now'))
            );
            """)

    def get(self, key: str) -> Optional[str]:
        with self._conn() as conn:
            r = conn.execute("SELECT value FROM kv WHERE key=?", (key,)).fetchone()
        return r["value"] if r else None

    def set(self, key: str, value: str) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO kv(key,value,updated_at) VALUES(?,?,datetime('now')) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
                (key, value))

    def remove(self, key: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM kv WHERE key=?", (key,))

    # ---- auth client storage protocol
    def get_item(self, key: str) -> Optional[str]: return self.get(key)
    def set_item(self, key: str, value: str) -> None: self.set(key, value)
    def remove_item(self, key: str) -> None: self.remove(key)

    def scoped(self, browser_id: str) -> "ScopedStore":
        return ScopedStore(self, browser_id)

class ScopedStore:
    """One browser's view of a KeyValueStore; its keys never collide with another browser's."""

    def __init__(self, store: KeyValueStore, browser_id: str):
        if not browser_id:
            raise ValueError("browser_id is required")
        self.store = store
        self.browser_id = browser_id

    def _key(self, key: str) -> str:
        return f"{self.browser_id}:{key}"

    def get(self, key: str) -> Optional[str]: return self.store.get(self._key(key))
    def set(self, key: str, value: str) -> None: self.store.set(self._key(key), value)
    def remove(self, key: str) -> None: self.store.remove(self._key(key))

    get_item, set_item, remove_item = get, set, remove

def new_browser_id() -> str:
    return secrets.token_urlsafe(16)

def browser_return_url(app_url: str, browser_id: str) -> str:
    """Redirect target that brings the browser id back through an OAuth round trip."""
    return f"{app_url.rstrip('/')}/?{urlencode({BROWSER_PARAM: browser_id})}"

@lru_cache(maxsize=None)
def get_store(path: Optional[str] = None) -> KeyValueStore:
    path = path or app_cfg.kv_path
    log.debug("opening key-value store at %s", path)
    return KeyValueStore(path)
