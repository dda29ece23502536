import asyncio, threading, logging
from supabase import acreate_client
from config import app_cfg, AppConfig

log = logging.getLogger(__name__)

CHANNEL_NAME = "blogs_changes"

class BlogChangeListener:
    """Watches the blog collection and counts change notifications.

    The async realtime client lives on its own event loop in a daemon
    thread. Streamlit pages poll ``version`` and refetch when it moved.
    """

    def __init__(self, cfg: AppConfig = app_cfg):
        self.cfg = cfg
        self.version = 0
        self._lock = threading.Lock()
        self._loop = None
        self._thread = None
        self._client = None
        self._channel = None

    def _notify(self, payload: dict):
        with self._lock:
            self.version += 1
        log.debug("blog change %s received (version=%s)", payload.get("eventType"), self.version)

    async def _subscribe(self):
        self._client = await acreate_client(self.cfg.supabase_url, self.cfg.supabase_anon_key)
        self._channel = self._client.channel(CHANNEL_NAME)
        self._channel.on_postgres_changes("*", schema="public", table=self.cfg.blog_table, callback=self._notify)
        await self._channel.subscribe()
        log.info("subscribed to realtime changes on %s", self.cfg.blog_table)

    def start(self):
        if self._thread is not None:
            return self
        if not self.cfg.backend_configured:
            log.warning("realtime disabled: backend not configured")
            return self
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, name="blog-realtime", daemon=True)
        self._thread.start()
        fut = asyncio.run_coroutine_threadsafe(self._subscribe(), self._loop)
        fut.add_done_callback(self._log_subscribe_result)
        return self

    @staticmethod
    def _log_subscribe_result(fut):
        if fut.exception() is not None:
            log.error("realtime subscription failed: %s", fut.exception())

    def stop(self):
        if self._loop is None:
            return
        if self._client is not None and self._channel is not None:
            fut = asyncio.run_coroutine_threadsafe(self._client.remove_channel(self._channel), self._loop)
            try:
                fut.result(timeout=5)
            except Exception as e:
                log.warning("realtime unsubscribe failed: %s", e)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._loop = self._thread = self._client = self._channel = None
