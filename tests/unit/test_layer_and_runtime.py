# =============================================================================
# tests/unit/test_layer_and_runtime.py
# Unit Tests for the Composition Root and the Admin Background Loop
# =============================================================================

from unittest.mock import MagicMock


class TestBuildPersistenceLayer:
    """Wiring from configuration"""

    def test_unconfigured_layer_runs_locally(self, unconfigured_config, run):
        """No credentials: no object storage, local mode"""
        from cms_core.storage import build_persistence_layer

        layer = build_persistence_layer(unconfigured_config)

        async def scenario():
            await layer.initialize()
            status = await layer.dispatcher.get_connection_status()
            products = await layer.dispatcher.get_products()
            await layer.destroy()
            return status, products

        status, products = run(scenario())

        assert layer.object_storage is None
        assert status["mode"] == "localStorage"
        assert products

    def test_configured_layer_uses_database(self, app_config, fake_supabase, s3_client, run):
        """With a reachable database the remote backend is initialized"""
        from cms_core.storage import build_persistence_layer

        layer = build_persistence_layer(app_config, supabase_client=fake_supabase, s3_client=s3_client)

        async def scenario():
            await layer.initialize()
            subscribed = len(fake_supabase.channels)
            status = await layer.dispatcher.get_connection_status()
            await layer.destroy()
            return subscribed, status

        subscribed, status = run(scenario())

        assert subscribed == 6
        assert status["mode"] == "database"
        assert fake_supabase.channels == []
        assert layer.event_bus.listener_count() == 0

    def test_database_mode_leaves_local_store_empty(self, app_config, fake_supabase, s3_client, run):
        """A fresh database is not offered seed data to migrate"""
        from cms_core.storage import build_persistence_layer

        layer = build_persistence_layer(app_config, supabase_client=fake_supabase, s3_client=s3_client)

        async def scenario():
            await layer.initialize()
            status = await layer.migration.check_migration_status()
            await layer.destroy()
            return status

        status = run(scenario())

        assert not status.has_local_data
        assert status.can_migrate is False

    def test_local_mode_seeds_defaults(self, unconfigured_config, run):
        """Local storage is seeded when it serves requests"""
        from cms_core.storage import build_persistence_layer

        layer = build_persistence_layer(unconfigured_config)

        async def scenario():
            await layer.initialize()
            raw = layer.local.read_raw("products")
            await layer.destroy()
            return raw

        assert len(run(scenario())) == 6

    def test_shared_event_bus(self, unconfigured_config):
        """Every collaborator publishes on the same bus"""
        from cms_core.storage import build_persistence_layer

        layer = build_persistence_layer(unconfigured_config)

        assert layer.local.event_bus is layer.event_bus
        assert layer.remote.event_bus is layer.event_bus
        assert layer.dispatcher.event_bus is layer.event_bus
        assert layer.migration.event_bus is layer.event_bus
        layer.store.close()


class TestBackgroundLoop:
    """Coroutines submitted from the Streamlit thread"""

    def test_run_returns_result(self):
        """run() blocks until the coroutine finishes"""
        from cms_core.ui.runtime import BackgroundLoop

        async def answer():
            return 42

        loop = BackgroundLoop(name="TestLoop")
        try:
            assert loop.run(answer(), timeout=5) == 42
        finally:
            loop.stop()
        assert not loop.is_running

    def test_admin_runtime_lifecycle(self, unconfigured_config):
        """start() initializes once; shutdown() stops the loop"""
        from cms_core.storage import build_persistence_layer
        from cms_core.ui.runtime import AdminRuntime

        runtime = AdminRuntime(build_persistence_layer(unconfigured_config)).start()
        try:
            assert runtime.initialized
            assert runtime.run(runtime.dispatcher.get_products(), timeout=5)
        finally:
            runtime.shutdown()
        assert not runtime.initialized


class TestStreamlitSecrets:
    """Supabase settings from secrets.toml"""

    def test_secrets_fill_missing_settings(self, unconfigured_config, monkeypatch):
        """Secrets are used when the environment has none"""
        import cms_core.ui.runtime as runtime

        fake_st = MagicMock()
        fake_st.secrets = {"supabase": {"url": "https://demo.supabase.co", "key": "anon"}}
        monkeypatch.setattr(runtime, "st", fake_st)

        config = runtime.config_with_streamlit_secrets(unconfigured_config)

        assert config.has_supabase_config
        assert config.supabase.url == "https://demo.supabase.co"

    def test_missing_secrets_keep_config(self, unconfigured_config, monkeypatch):
        """No [supabase] section leaves the config unchanged"""
        import cms_core.ui.runtime as runtime

        fake_st = MagicMock()
        fake_st.secrets = {}
        monkeypatch.setattr(runtime, "st", fake_st)

        assert runtime.config_with_streamlit_secrets(unconfigured_config) is unconfigured_config

    def test_environment_wins(self, app_config, monkeypatch):
        """Configured environments never read secrets"""
        import cms_core.ui.runtime as runtime

        fake_st = MagicMock()
        monkeypatch.setattr(runtime, "st", fake_st)

        assert runtime.config_with_streamlit_secrets(app_config) is app_config
