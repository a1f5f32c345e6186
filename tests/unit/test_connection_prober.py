# =============================================================================
# tests/unit/test_connection_prober.py
# Unit Tests for BackendProber
# =============================================================================

from unittest.mock import MagicMock


class TestProberWithoutConfiguration:
    """Missing credentials never reach the network"""

    def test_not_configured_skips_network(self, monkeypatch, run):
        """No client is created when URL and key are absent"""
        import cms_core.storage.supabase_client as supabase_client
        from cms_core.config import SupabaseSettings
        from cms_core.storage import BackendProber, ProbeStatus, SupabaseClientProvider

        create = MagicMock()
        monkeypatch.setattr(supabase_client, "acreate_client", create)
        prober = BackendProber(SupabaseClientProvider(SupabaseSettings()))

        assert run(prober.check_availability()) is False
        assert prober.status == ProbeStatus.NOT_CONFIGURED
        create.assert_not_called()

    def test_status_display_when_not_configured(self, run):
        """Display dict reports configured=False"""
        from cms_core.config import SupabaseSettings
        from cms_core.storage import BackendProber, SupabaseClientProvider

        prober = BackendProber(SupabaseClientProvider(SupabaseSettings(url="https://x.supabase.co")))
        run(prober.check_availability())
        display = prober.get_status_display()

        assert display["status"] == "not_configured"
        assert display["configured"] is False
        assert display["available"] is False


class TestProberCaching:
    """Probe once, reuse the answer"""

    def test_cached_result_none_before_probe(self, prober):
        """Nothing cached until the first check"""
        assert prober.cached_result is None

    def test_available_result_cached(self, prober, fake_supabase, run):
        """A second check does not query again"""
        assert run(prober.check_availability()) is True
        assert run(prober.check_availability()) is True

        assert fake_supabase.calls.count(("select", "products")) == 1

    def test_failure_marks_unavailable(self, prober, fake_supabase, run):
        """A failing probe query means unavailable, with the error kept"""
        fake_supabase.fail("select", "products", ConnectionError("connection refused"))

        assert run(prober.check_availability()) is False
        assert prober.state.error_message == "connection refused"
        assert prober.state.consecutive_failures == 1

    def test_force_recheck_refreshes(self, prober, fake_supabase, run):
        """force_recheck probes again and notifies callbacks"""
        seen = []
        prober.register_callback(lambda state: seen.append(state.status.value))
        fake_supabase.fail("select", "products", ConnectionError("down"))
        run(prober.check_availability())

        fake_supabase.failures.clear()

        assert run(prober.force_recheck()) is True
        assert seen == ["unavailable", "available"]
        assert prober.state.consecutive_failures == 0

    def test_callback_errors_are_contained(self, prober, run):
        """A broken callback does not break the probe"""
        def broken(_state):
            raise RuntimeError("callback failed")

        prober.register_callback(broken)

        assert run(prober.check_availability()) is True

    def test_concurrent_first_checks_share_one_probe(self, prober, fake_supabase, run):
        """Checks started together wait for a single probe query"""
        import asyncio

        seen = []
        prober.register_callback(lambda state: seen.append(state.status.value))
        fake_supabase.latency = 0.01

        async def scenario():
            return await asyncio.gather(*(prober.check_availability() for _ in range(4)))

        assert run(scenario()) == [True, True, True, True]
        assert fake_supabase.calls.count(("select", "products")) == 1
        assert seen == ["available"]

    def test_concurrent_dispatcher_reads_probe_once(self, dispatcher, fake_supabase, run):
        """A hook-style gather over four reads issues one probe"""
        import asyncio

        fake_supabase.latency = 0.01

        async def scenario():
            await asyncio.gather(
                dispatcher.get_products(),
                dispatcher.get_content(),
                dispatcher.get_settings(),
                dispatcher.get_media(),
            )

        run(scenario())

        # one probe plus the products read itself
        assert fake_supabase.calls.count(("select", "products")) == 2
