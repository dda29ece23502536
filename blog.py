from datetime import datetime
from typing import Dict, List, Optional, Tuple
import pandas as pd

def validate_post(title: str, content: str) -> Optional[str]:
    if not (title or "").strip() or not (content or "").strip():
        return "Title and content are required"
    return None

def truncate_content(content: str, max_length: int = 150) -> str:
    content = content or ""
    if len(content) <= max_length:
        return content
    return content[:max_length] + "..."

def format_date(value) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return f"{value:%b} {value.day}, {value.year}"

def author_of(blog: Dict, profile_table: str) -> Tuple[str, Optional[str]]:
    author = blog.get(profile_table) or {}
    return (author.get("name") or "Anonymous", author.get("avatar_url"))

def is_author(blog: Dict, user: Optional[Dict]) -> bool:
    return bool(user) and blog.get("user_id") == user.get("id")

def blogs_frame(blogs: List[Dict], profile_table: str) -> pd.DataFrame:
    rows = [{
        "id": b["id"],
        "title": b.get("title"),
        "author": author_of(b, profile_table)[0],
        "created": format_date(b.get("created_at")),
        "preview": truncate_content(b.get("content") or "", 60),
    } for b in blogs]
    return pd.DataFrame(rows, columns=["id", "title", "author", "created", "preview"])
