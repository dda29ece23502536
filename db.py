import logging
from datetime import datetime, timezone
import httpx
from supabase import PostgrestAPIError
from config import app_cfg
from services.supabase_client import BackendError

log = logging.getLogger(__name__)

DUPLICATE_KEY = "23505"

def _tables():
    return app_cfg.profile_table, app_cfg.blog_table

def _execute(query, what: str):
    try:
        return query.execute()
    except PostgrestAPIError as e:
        level = logging.DEBUG if e.code == DUPLICATE_KEY else logging.WARNING
        log.log(level, "%s failed: %s", what, e.message)
        raise BackendError(e.message or f"{what} failed", code=e.code) from e
    except httpx.HTTPError as e:
        log.warning("%s failed: %s", what, e)
        raise BackendError(f"{what} failed: {e}") from e

def _first(res):
    data = getattr(res, "data", None) or []
    return data[0] if data else None

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def _blog_columns(with_author: bool = True) -> str:
    profiles, _ = _tables()
    cols = "id, title, content, created_at, user_id"
    return f"{cols}, {profiles} (name, avatar_url)" if with_author else "*"

# ---- profiles
def get_profile(client, user_id: str):
    profiles, _ = _tables()
    res = _execute(client.table(profiles).select("*").eq("id", user_id).limit(1), "load profile")
    return _first(res)

def insert_profile(client, profile: dict):
    profiles, _ = _tables()
    row = {"created_at": _now_iso(), **profile}
    try:
        res = _execute(client.table(profiles).insert(row), "save profile")
    except BackendError as e:
        if e.code == DUPLICATE_KEY:
            log.info("profile %s already exists", profile.get("id"))
            return None
        raise
    return _first(res)

# ---- blogs
def list_blogs(client):
    _, blogs = _tables()
    res = _execute(client.table(blogs).select(_blog_columns()).order("created_at", desc=True), "load blogs")
    return res.data or []

def get_blog(client, blog_id, with_author: bool = True):
    _, blogs = _tables()
    res = _execute(client.table(blogs).select(_blog_columns(with_author)).eq("id", blog_id).limit(1), "load blog")
    return _first(res)

def create_blog(client, user_id: str, title: str, content: str):
    _, blogs = _tables()
    res = _execute(client.table(blogs).insert({"title": title, "content": content, "user_id": user_id}), "create blog")
    row = _first(res)
    if row is None:
        raise BackendError("create blog failed: no row returned")
    log.info("blog %s created by %s", row.get("id"), user_id)
    return row

def update_blog(client, blog_id, title: str, content: str):
    _, blogs = _tables()
    fields = {"title": title, "content": content, "updated_at": _now_iso()}
    res = _execute(client.table(blogs).update(fields).eq("id", blog_id), "update blog")
    return _first(res)

def delete_blog(client, blog_id):
    _, blogs = _tables()
    _execute(client.table(blogs).delete().eq("id", blog_id), "delete blog")
    log.info("blog %s deleted", blog_id)
