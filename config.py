import os
from dataclasses import dataclass, field
from pathlib import Path

def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default

@dataclass
class AppConfig:
    app_url: str = field(default_factory=lambda: os.getenv("APP_URL", "http://localhost:8501"))  # OAuth redirect target
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_anon_key: str = field(default_factory=lambda: os.getenv("SUPABASE_ANON_KEY", ""))
    token_secret: str = field(default_factory=lambda: os.getenv("TOKEN_SECRET", "your-secret-key-change-in-production"))
    kv_path: str = field(default_factory=lambda: os.getenv("BLOG_KV_PATH", str(Path(__file__).resolve().parent / "local_store.db")))
    profile_table: str = field(default_factory=lambda: os.getenv("PROFILE_TABLE", "users_auth_87654321"))
    blog_table: str = field(default_factory=lambda: os.getenv("BLOG_TABLE", "blogs_57293ab4c6"))
    realtime_poll_seconds: int = field(default_factory=lambda: _env_int("REALTIME_POLL_SECONDS", 3))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def backend_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

app_cfg = AppConfig()
