from __future__ import annotations
import streamlit as st

from cms_core.errors import handle_error
from cms_core.ui import get_admin_runtime, render_storage_panel

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="Shyam Trading Company - Admin",
    page_icon="🏗️",
    layout="wide",
)

st.title("Shyam Trading Company - Website Admin")

# The persistence layer and its event loop live across reruns
try:
    runtime = get_admin_runtime()
except Exception as e:
    handle_error(e, user_message="Could not start the storage layer")
    st.stop()

render_storage_panel(runtime)
