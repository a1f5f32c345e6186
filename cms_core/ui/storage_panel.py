# =============================================================================
# cms_core/ui/storage_panel.py
# Admin Storage Panel: status, mode toggle, migration, backup, diagnostics
# =============================================================================

from __future__ import annotations
import streamlit as st

from cms_core.errors import ErrorContext, handle_error
from cms_core.hooks import WebsiteDataHook
from cms_core.storage.diagnostics import (
    cleanup_orphaned_blobs,
    find_storage_discrepancies,
    orphaned_keys,
)
from .runtime import AdminRuntime

HOOK_KEY = "cms_website_data_hook"
MIGRATION_STATUS_KEY = "cms_migration_status"
STORAGE_REPORT_KEY = "cms_storage_report"


def _get_data_hook(runtime: AdminRuntime) -> WebsiteDataHook:
    """One mounted hook per browser session."""
    hook = st.session_state.get(HOOK_KEY)
    if hook is None:
        hook = WebsiteDataHook(runtime.dispatcher, runtime.layer.event_bus)
        runtime.run(hook.mount())
        st.session_state[HOOK_KEY] = hook
    elif hook.stale:
        runtime.run(hook.load())
    return hook


def render_connection_status(runtime: AdminRuntime) -> None:
    status = runtime.run(runtime.dispatcher.get_connection_status())
    probe = runtime.layer.prober.get_status_display()

    col1, col2, col3 = st.columns(3)
    with col1:
        label = "Database" if status["mode"] == "database" else "Local storage"
        st.metric("Storage mode", label)
    with col2:
        st.metric("Database", "Connected" if status["connected"] else "Offline")
    with col3:
        st.metric("Last check", probe["last_check"])

    if not status["has_environment_vars"]:
        st.info("Supabase is not configured. Set SUPABASE_URL and SUPABASE_KEY to enable the database.")
    elif probe["error"]:
        st.warning(f"Database unavailable: {probe['error']}")

    force_local = st.toggle(
        "Force local storage",
        value=status["force_local"],
        help="Use local storage even when the database is reachable. Data is not copied.",
    )
    if force_local != status["force_local"]:
        runtime.dispatcher.set_force_local(force_local)
        st.rerun()

    if st.button("Reconnect to database", disabled=not status["has_environment_vars"]):
        with ErrorContext("Reconnecting to database"):
            if runtime.run(runtime.dispatcher.reconnect_to_database()):
                st.success("Connected to database")
            else:
                st.warning("Database still unavailable; staying on local storage")


def render_migration(runtime: AdminRuntime) -> None:
    st.subheader("Migrate local data to database")

    if st.button("Check migration status"):
        try:
            st.session_state[MIGRATION_STATUS_KEY] = runtime.run(
                runtime.migration.check_migration_status()
            )
        except Exception as e:
            handle_error(e, user_message="Could not read migration status")

    status = st.session_state.get(MIGRATION_STATUS_KEY)
    if status is None:
        return

    st.dataframe(status.to_dataframe(), use_container_width=True, hide_index=True)
    if not status.can_migrate:
        reason = "No local data found." if not status.has_local_data else "The database already has data."
        st.info(f"Migration not available. {reason}")
        return

    clear_after = st.checkbox("Clear local data after a successful migration", value=False)
    if st.button("Migrate now", type="primary"):
        try:
            result = runtime.run(
                runtime.migration.migrate_from_local_storage(confirm_clear=lambda _: clear_after)
            )
        except Exception as e:
            handle_error(e)
            return
        st.success(f"Migrated {result.total} records in {result.elapsed:.1f}s")
        if result.media_skipped:
            st.warning(f"{result.media_skipped} media items were not migrated; re-upload them.")
        st.session_state.pop(MIGRATION_STATUS_KEY, None)


def render_backup(runtime: AdminRuntime) -> None:
    st.subheader("Backup")
    hook = _get_data_hook(runtime)

    if hook.error:
        st.error(hook.error)
    st.caption(
        f"{len(hook.products)} products, {len(hook.media)} media items, "
        f"{len((hook.content or {}).get('testimonials', []))} testimonials"
    )

    if st.button("Prepare export"):
        with ErrorContext("Exporting website data"):
            text, filename = runtime.run(hook.export_data())
            st.download_button("Download export", text, file_name=filename, mime="application/json")

    uploaded = st.file_uploader("Import export file", type=["json"])
    if uploaded is not None and st.button("Import"):
        with ErrorContext("Importing website data", show_success=True, success_message="Data imported"):
            runtime.run(hook.import_data(uploaded.getvalue().decode("utf-8")))


def render_storage_diagnostics(runtime: AdminRuntime) -> None:
    st.subheader("Media storage check")
    storage = runtime.layer.object_storage
    if storage is None:
        st.info("Object storage is not configured.")
        return

    if st.button("Scan bucket"):
        try:
            st.session_state[STORAGE_REPORT_KEY] = runtime.run(
                find_storage_discrepancies(runtime.layer.remote, storage)
            )
        except Exception as e:
            handle_error(e, user_message="Storage scan failed")

    report = st.session_state.get(STORAGE_REPORT_KEY)
    if report is None:
        return

    st.dataframe(report, use_container_width=True, hide_index=True)
    orphans = orphaned_keys(report)
    if orphans and st.button(f"Delete {len(orphans)} orphaned files"):
        deleted = runtime.run(cleanup_orphaned_blobs(report, storage, dry_run=False))
        st.success(f"Deleted {len(deleted)} orphaned files")
        st.session_state.pop(STORAGE_REPORT_KEY, None)


def render_storage_panel(runtime: AdminRuntime) -> None:
    """Full storage administration page."""
    st.header("Storage")
    try:
        render_connection_status(runtime)
    except Exception as e:
        handle_error(e, user_message="Could not read connection status")
        return

    st.divider()
    render_migration(runtime)
    st.divider()
    render_backup(runtime)
    st.divider()
    render_storage_diagnostics(runtime)
