import logging
from typing import Optional
from supabase import create_client, Client, ClientOptions
from config import app_cfg, AppConfig

log = logging.getLogger(__name__)

class BackendError(Exception):
    """A failure reported by the external backend, carrying a displayable message."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

def get_client(storage=None, cfg: AppConfig = app_cfg) -> Client:
    if not cfg.backend_configured:
        raise BackendError("Supabase is not configured (set SUPABASE_URL and SUPABASE_ANON_KEY).")
    opts = dict(auto_refresh_token=True, persist_session=True, flow_type="pkce")
    if storage is not None:
        opts["storage"] = storage
    log.info("connecting to backend at %s", cfg.supabase_url)
    return create_client(cfg.supabase_url, cfg.supabase_anon_key, options=ClientOptions(**opts))
