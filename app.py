import logging
import streamlit as st

from config import app_cfg
from auth import SessionManager, AuthFlowError, AuthPhase, validate_registration
from blog import validate_post, truncate_content, format_date, author_of, is_author, blogs_frame
from db import list_blogs, get_blog, create_blog, update_blog, delete_blog
from services.supabase_client import get_client, BackendError
from services.realtime import BlogChangeListener
from storage import get_store, new_browser_id, browser_return_url, BROWSER_PARAM

logging.basicConfig(
    level=getattr(logging, app_cfg.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
log = logging.getLogger(__name__)

st.set_page_config(page_title="Blog Dashboard", layout="wide")
PROFILES = app_cfg.profile_table

# ------------- helpers -------------
def _qp(name: str):
    return st.query_params.get(name)

def _go(view: str, blog_id=None):
    st.session_state.view = view
    st.session_state.blog_id = blog_id
    st.session_state.pop("confirm_delete", None)
    st.rerun()

@st.cache_resource
def _listener() -> BlogChangeListener:
    return BlogChangeListener(app_cfg).start()

def _browser_id() -> str:
    # a returning OAuth callback carries the id of the browser that started it
    if "browser_id" not in st.session_state:
        returning = _qp(BROWSER_PARAM) if _qp("code") else None
        st.session_state.browser_id = returning or new_browser_id()
    return st.session_state.browser_id

def _manager() -> SessionManager:
    if "auth_manager" not in st.session_state:
        store = get_store().scoped(_browser_id())
        mgr = SessionManager(get_client(storage=store), store).subscribe()
        with st.spinner("Checking your session..."):
            mgr.restore_session()
        st.session_state.auth_manager = mgr
    return st.session_state.auth_manager

def _delete(blog_id):
    try:
        delete_blog(mgr.client, blog_id)
        st.session_state.pop("blogs", None)
        return True
    except BackendError as e:
        st.error(f"Failed to delete blog: {e.message}")
        return False

# ------------- Login / Register -------------
def show_login():
    st.title("Blog Dashboard")
    state = mgr.state
    if state.error:
        st.error(state.error)

    login_tab, register_tab = st.tabs(["Sign in", "Create account"])
    with login_tab:
        with st.form("login_form"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in"):
                try:
                    mgr.login(email, password)
                    st.rerun()
                except AuthFlowError as e:
                    st.error(e.message or "Failed to login. Please check your credentials.")

    with register_tab:
        with st.form("register_form"):
            name = st.text_input("Full name")
            r_email = st.text_input("Email", key="reg_email")
            r_password = st.text_input("Password", type="password", key="reg_pw")
            confirm = st.text_input("Confirm password", type="password")
            if st.form_submit_button("Create account"):
                problem = validate_registration(r_password, confirm)
                if problem:
                    st.error(problem)
                else:
                    try:
                        mgr.register(r_email, r_password, name)
                        st.rerun()
                    except AuthFlowError as e:
                        st.error(e.message or "Failed to register. Please try again.")

    st.markdown("---")
    if state.phase == AuthPhase.PENDING_REDIRECT and st.session_state.get("oauth_url"):
        st.link_button("Continue to Google", st.session_state.oauth_url)
        st.caption("You will come back here once Google confirms your account.")
    elif st.button("Sign in with Google"):
        try:
            st.session_state.oauth_url = mgr.begin_oauth("google", browser_return_url(app_cfg.app_url, _browser_id()))
            st.rerun()
        except AuthFlowError as e:
            st.error(e.message or "Failed to login with Google.")

# ------------- Boot -------------
try:
    mgr = _manager()
except BackendError as e:
    st.error(e.message)
    st.stop()

# OAuth provider sends the browser back with ?code=
code = _qp("code")
if code:
    try:
        mgr.complete_oauth(code)
    except AuthFlowError as e:
        log.info("OAuth callback rejected: %s", e.message)
    st.query_params.clear()
    st.rerun()

if not mgr.state.is_authenticated:
    show_login()
    st.stop()

user = mgr.state.user
st.session_state.setdefault("view", "dashboard")

st.sidebar.write(f"Logged in as **{user.get('name') or 'User'}**")
if user.get("avatar_url"):
    st.sidebar.image(user["avatar_url"], width=48)
if st.sidebar.button("Logout"):
    try:
        mgr.logout()
    except AuthFlowError as e:
        log.error("Logout error: %s", e.message)
    st.rerun()

# -------- DASHBOARD --------
@st.fragment(run_every=app_cfg.realtime_poll_seconds)
def blog_feed():
    listener = _listener()
    if "blogs" not in st.session_state or st.session_state.get("blogs_version") != listener.version:
        try:
            st.session_state.blogs = list_blogs(mgr.client)
            st.session_state.blogs_version = listener.version
            st.session_state.blogs_error = None
        except BackendError as e:
            st.session_state.blogs_error = e.message
    if st.session_state.get("blogs_error"):
        st.error(st.session_state.blogs_error)
    blogs = st.session_state.get("blogs") or []
    if not blogs:
        st.subheader("No blog posts yet")
        st.caption("Create your first blog post to get started!")
        return

    if st.toggle("Table view"):
        st.dataframe(blogs_frame(blogs, PROFILES), use_container_width=True, hide_index=True)
        return

    cols = st.columns(3)
    for i, b in enumerate(blogs):
        with cols[i % 3].container(border=True):
            st.markdown(f"### {b['title']}")
            st.write(truncate_content(b.get("content") or ""))
            name, _avatar = author_of(b, PROFILES)
            st.caption(f"🕒 {format_date(b.get('created_at'))} · {name}")
            c1, c2, c3 = st.columns(3)
            if c1.button("Read More", key=f"read_{b['id']}"):
                _go("post", b["id"])
            if is_author(b, user):
                if c2.button("Edit", key=f"edit_{b['id']}"):
                    _go("edit", b["id"])
                if c3.button("Delete", key=f"del_{b['id']}"):
                    st.session_state.confirm_delete = b["id"]
                if st.session_state.get("confirm_delete") == b["id"]:
                    st.warning("Are you sure you want to delete this blog?")
                    if st.button("Yes, delete", key=f"confirm_{b['id']}"):
                        if _delete(b["id"]):
                            st.session_state.pop("confirm_delete", None)
                            st.rerun()

def show_dashboard():
    head, action = st.columns([4, 1])
    head.title("Your Blog Dashboard")
    if action.button("➕ Create New Post"):
        _go("create")
    blog_feed()

# -------- CREATE / EDIT --------
def show_editor(blog_id=None):
    existing = None
    if blog_id is not None:
        try:
            existing = get_blog(mgr.client, blog_id, with_author=False)
        except BackendError as e:
            st.error(e.message)
            return
        if not existing or not is_author(existing, user):
            _go("dashboard")
    st.title("Edit Blog Post" if existing else "Create New Blog Post")
    if st.button("✖ Cancel"):
        _go("post" if existing else "dashboard", blog_id)
    with st.form("editor"):
        title = st.text_input("Title", value=(existing or {}).get("title", ""), placeholder="Enter blog title")
        content = st.text_area("Content", value=(existing or {}).get("content", ""), height=320,
                               placeholder="Write your blog content here...")
        if st.form_submit_button("Save Changes" if existing else "Publish Post"):
            problem = validate_post(title, content)
            if problem:
                st.error(problem)
                return
            try:
                if existing:
                    update_blog(mgr.client, blog_id, title, content)
                    target = blog_id
                else:
                    target = create_blog(mgr.client, user["id"], title, content)["id"]
            except BackendError as e:
                st.error(e.message)
                return
            st.session_state.pop("blogs", None)
            _go("post", target)

# -------- POST --------
def show_post(blog_id):
    if st.button("← Back to Dashboard"):
        _go("dashboard")
    try:
        b = get_blog(mgr.client, blog_id)
    except BackendError as e:
        st.error(e.message)
        return
    if not b:
        st.error("Blog post not found")
        return
    st.title(b["title"])
    name, _avatar = author_of(b, PROFILES)
    st.caption(f"{name} · {format_date(b.get('created_at'))}")
    if is_author(b, user):
        c1, c2, _ = st.columns([1, 1, 6])
        if c1.button("Edit"):
            _go("edit", blog_id)
        if c2.button("Delete"):
            st.session_state.confirm_delete = blog_id
        if st.session_state.get("confirm_delete") == blog_id:
            st.warning("Are you sure you want to delete this blog post?")
            if st.button("Yes, delete") and _delete(blog_id):
                _go("dashboard")
    st.markdown("---")
    st.write(b.get("content") or "")

view = st.session_state.view
if view == "create":
    show_editor()
elif view == "edit":
    show_editor(st.session_state.blog_id)
elif view == "post":
    show_post(st.session_state.blog_id)
else:
    show_dashboard()
