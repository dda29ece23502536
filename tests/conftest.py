import itertools
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from supabase import AuthError, PostgrestAPIError

from auth import SessionManager
from config import AppConfig, app_cfg
from storage import KeyValueStore

PROFILES = app_cfg.profile_table
BLOGS = app_cfg.blog_table


class FakeAuthError(AuthError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message


class FakeQuery:
    """Just enough of the PostgREST query builder for db.py."""

    def __init__(self, backend, table):
        self.backend = backend
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.filters = []
        self.ordering = None
        self.limit_to = None
        self.payload = None

    def select(self, columns="*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, fields):
        self.op, self.payload = "update", fields
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, n):
        self.limit_to = n
        return self

    def _matches(self, row):
        return all(row.get(k) == v for k, v in self.filters)

    def _with_author(self, row):
        row = dict(row)
        if PROFILES in self.columns:
            author = next((p for p in self.backend.rows[PROFILES] if p["id"] == row.get("user_id")), None)
            row[PROFILES] = {"name": author["name"], "avatar_url": author.get("avatar_url")} if author else None
        return row

    def execute(self):
        if self.backend.fail_with:
            raise PostgrestAPIError({"message": self.backend.fail_with, "code": "500", "hint": None, "details": None})
        rows = self.backend.rows.setdefault(self.table, [])
        if self.op == "insert":
            if any(r["id"] == self.payload.get("id") for r in rows if "id" in self.payload):
                raise PostgrestAPIError({"message": "duplicate key value", "code": "23505", "hint": None, "details": None})
            row = {"id": next(self.backend.ids), "created_at": datetime.now(timezone.utc).isoformat(), **self.payload}
            rows.append(row)
            return SimpleNamespace(data=[dict(row)])
        if self.op == "update":
            hit = [r for r in rows if self._matches(r)]
            for r in hit:
                r.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in hit])
        if self.op == "delete":
            hit = [r for r in rows if self._matches(r)]
            self.backend.rows[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=hit)
        hit = [self._with_author(r) for r in rows if self._matches(r)]
        if self.ordering:
            col, desc = self.ordering
            hit.sort(key=lambda r: r.get(col) or "", reverse=desc)
        if self.limit_to is not None:
            hit = hit[:self.limit_to]
        return SimpleNamespace(data=hit)


class FakeAuth:
    def __init__(self):
        self.session = None
        self.accounts = {}
        self.listeners = []
        self.fail_with = None
        self.oauth_requests = []

    def _emit(self, event, session):
        for cb in list(self.listeners):
            cb(event, session)

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return SimpleNamespace(unsubscribe=lambda: self.listeners.remove(callback))

    def get_session(self):
        if self.fail_with:
            raise FakeAuthError(self.fail_with)
        return self.session

    def _sign_in(self, user):
        self.session = SimpleNamespace(user=user, access_token="access")
        self._emit("SIGNED_IN", self.session)
        return SimpleNamespace(user=user, session=self.session)

    def sign_up(self, credentials):
        if credentials["email"] in self.accounts:
            raise FakeAuthError("User already registered")
        user = make_auth_user(f"uid-{len(self.accounts) + 1}", credentials["email"],
                              credentials.get("options", {}).get("data", {}))
        self.accounts[credentials["email"]] = (credentials["password"], user)
        return self._sign_in(user)

    def sign_in_with_password(self, credentials):
        password, user = self.accounts.get(credentials["email"], (None, None))
        if user is None or password != credentials["password"]:
            raise FakeAuthError("Invalid login credentials")
        return self._sign_in(user)

    def sign_in_with_oauth(self, credentials):
        if self.fail_with:
            raise FakeAuthError(self.fail_with)
        self.oauth_requests.append(credentials)
        return SimpleNamespace(provider=credentials["provider"], url="https://auth.example/authorize?provider=google")

    def exchange_code_for_session(self, params):
        if params["auth_code"] != "good-code":
            raise FakeAuthError("invalid flow state")
        user = make_auth_user("google-1", "g@example.com", {"full_name": "Grace Hopper", "picture": "https://img/g.png"})
        return self._sign_in(user)

    def sign_out(self):
        if self.fail_with:
            raise FakeAuthError(self.fail_with)
        self.session = None
        self._emit("SIGNED_OUT", None)


class FakeClient:
    def __init__(self):
        self.rows = {PROFILES: [], BLOGS: []}
        self.ids = itertools.count(1)
        self.fail_with = None
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)


def make_auth_user(uid, email, metadata=None):
    return SimpleNamespace(id=uid, email=email, user_metadata=metadata or {},
                           created_at=datetime(2025, 1, 5, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(str(tmp_path / "kv.db"))


@pytest.fixture
def cfg():
    return AppConfig(app_url="http://localhost:8501", token_secret="test-secret")


@pytest.fixture
def manager(client, store, cfg):
    return SessionManager(client, store, cfg=cfg).subscribe()
