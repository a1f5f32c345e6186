# =============================================================================
# tests/unit/test_remote_backend.py
# Unit Tests for RemoteBackend (fake Supabase client, mocked S3)
# =============================================================================

import pytest
from botocore.exceptions import ClientError


PUBLIC_PREFIX = "https://demo.supabase.co/storage/v1/object/public/website-images/"


class TestRemoteLifecycle:
    """Test initialize, realtime and destroy"""

    def test_initialize_subscribes_once_per_table(self, remote_backend, fake_supabase, run):
        """One channel per table, and a second initialize is a no-op"""
        run(remote_backend.initialize())
        run(remote_backend.initialize())

        names = sorted(c.name for c in fake_supabase.channels)
        assert names == sorted(f"{t}_changes" for t in
                               ("products", "content", "settings", "media", "testimonials", "categories"))

    def test_realtime_change_forwarded(self, remote_backend, fake_supabase, event_bus, run, recorder):
        """A postgres change reaches DATA_UPDATED and the typed event"""
        from cms_core.storage import Events

        typed = []
        event_bus.on(Events.PRODUCT_UPDATED, typed.append)
        run(remote_backend.initialize())

        payload = {"eventType": "UPDATE", "new": {"id": 5, "featured": True}}
        fake_supabase.push("products", payload)

        assert typed == [payload]
        assert recorder[-1] == {"type": "products", "action": "realtime", "data": payload, "source": "realtime"}

    def test_realtime_failure_does_not_block_initialize(self, remote_backend, monkeypatch, run):
        """Channel errors are logged; the backend still serves requests"""
        async def broken(_client):
            raise RuntimeError("websocket refused")

        monkeypatch.setattr(remote_backend.realtime, "subscribe_all", broken)

        run(remote_backend.initialize())

        assert run(remote_backend.get_products()) == []

    def test_destroy_removes_channels(self, remote_backend, fake_supabase, run):
        """destroy() unsubscribes everything"""
        run(remote_backend.initialize())
        run(remote_backend.destroy())

        assert fake_supabase.channels == []
        assert not remote_backend.realtime.is_subscribed

    def test_unreachable_database_raises(self, remote_backend, fake_supabase, run):
        """initialize surfaces the probe failure as a connectivity error"""
        from cms_core.errors import ConnectivityError

        fake_supabase.fail("select", "products", RuntimeError("network unreachable"))

        with pytest.raises(ConnectivityError) as exc_info:
            run(remote_backend.initialize())
        assert "Network error" in exc_info.value.message


class TestRemoteProducts:
    """Test product rows and transforms"""

    def test_add_product_stores_snake_case(self, remote_backend, fake_supabase, run, recorder):
        """Columns are snake_case; the returned record is camelCase with a db id"""
        created = run(remote_backend.add_product({"name": "Steel Rod", "category": "Steel Bars", "inStock": False}))

        row = fake_supabase.tables["products"][0]
        assert row["in_stock"] is False
        assert created["inStock"] is False
        assert created["id"] == row["id"]
        assert recorder[-1]["action"] == "added"
        assert recorder[-1]["source"] == "remote"

    def test_distinct_ids(self, remote_backend, run):
        """Backend-assigned ids never collide"""
        async def add_two():
            a = await remote_backend.add_product({"name": "A", "category": "Glass"})
            b = await remote_backend.add_product({"name": "B", "category": "Glass"})
            return a, b

        a, b = run(add_two())

        assert a["id"] != b["id"]

    def test_newest_first(self, remote_backend, run):
        """get_products orders by creation time descending"""
        async def scenario():
            await remote_backend.add_product({"name": "Old", "category": "Glass"})
            await remote_backend.add_product({"name": "New", "category": "Glass"})
            return await remote_backend.get_products()

        assert [p["name"] for p in run(scenario())] == ["New", "Old"]

    def test_update_only_sends_given_columns(self, remote_backend, fake_supabase, run):
        """Partial updates leave other columns alone"""
        async def scenario():
            created = await remote_backend.add_product({"name": "Mirror", "category": "Glass", "price": "₹900"})
            return await remote_backend.update_product(created["id"], {"featured": True})

        updated = run(scenario())

        assert updated["featured"] is True
        assert updated["price"] == "₹900"

    def test_empty_update_makes_no_call(self, remote_backend, fake_supabase, run):
        """Nothing to change means no query"""
        assert run(remote_backend.update_product(1, {"unknown": 1})) is None
        assert ("update", "products") not in fake_supabase.calls

    def test_update_missing_row_returns_none(self, remote_backend, run, recorder):
        """No matching row is not an error"""
        assert run(remote_backend.update_product(404, {"featured": True})) is None
        assert recorder == []

    def test_not_found_code_translated(self, remote_backend, fake_supabase, run, api_error):
        """PGRST116 becomes a not-found message with the cause chained"""
        from cms_core.errors import BackendOperationError

        cause = api_error("no rows", code="PGRST116")
        fake_supabase.fail("delete", "products", cause)

        with pytest.raises(BackendOperationError) as exc_info:
            run(remote_backend.delete_product(3))

        assert exc_info.value.message == "Record not found while trying to delete product"
        assert exc_info.value.__cause__ is cause


class TestRemoteSections:
    """Content and settings are stored one row per section"""

    def test_save_and_read_content(self, remote_backend, fake_supabase, run):
        """Sections become rows; testimonials come from their own table"""
        async def scenario():
            await remote_backend.add_testimonial({"name": "R. Sharma", "text": "Great", "rating": 5})
            await remote_backend.save_content({
                "hero": {"title": "Welcome"},
                "about": {"title": "About"},
                "testimonials": [{"name": "ignored", "text": "x"}],
            })
            return await remote_backend.get_content()

        content = run(scenario())

        assert sorted(r["section"] for r in fake_supabase.tables["content"]) == ["about", "hero"]
        assert content["hero"] == {"title": "Welcome"}
        assert [t["name"] for t in content["testimonials"]] == ["R. Sharma"]

    def test_resave_updates_in_place(self, remote_backend, fake_supabase, run):
        """Upsert on section keeps one row per section"""
        async def scenario():
            await remote_backend.save_settings({"company": {"name": "Old"}})
            await remote_backend.save_settings({"company": {"name": "New"}})
            return await remote_backend.get_settings()

        assert run(scenario()) == {"company": {"name": "New"}}
        assert len(fake_supabase.tables["settings"]) == 1

    def test_partial_section_failure(self, remote_backend, fake_supabase, run):
        """Sections before the failing one stay written"""
        from cms_core.errors import BackendOperationError

        def fail_about(query):
            if query.payload["section"] == "about":
                return RuntimeError("statement timeout")
            return None

        fake_supabase.fail("upsert", "content", fail_about)

        with pytest.raises(BackendOperationError) as exc_info:
            run(remote_backend.save_content({
                "hero": {"title": "Saved"},
                "about": {"title": "Lost"},
                "cta": {"title": "Never sent"},
            }))

        assert exc_info.value.operation == "save content section 'about'"
        assert [r["section"] for r in fake_supabase.tables["content"]] == ["hero"]


class TestRemoteMedia:
    """Upload to object storage, then record metadata"""

    def test_upload_then_insert(self, remote_backend, fake_supabase, s3_client, run, make_upload, recorder):
        """Blob goes to the bucket with a public URL recorded in the media row"""
        item = run(remote_backend.add_media_item(make_upload(2048), category="products"))

        kwargs = s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "website-images"
        assert kwargs["Key"].startswith("products/")
        assert kwargs["Key"].endswith(".png")
        assert kwargs["ACL"] == "public-read"
        assert kwargs["CacheControl"] == "max-age=3600"

        assert item["url"] == PUBLIC_PREFIX + kwargs["Key"]
        assert fake_supabase.tables["media"][0]["upload_date"] == item["uploadDate"]
        assert recorder[-1]["type"] == "media"

    def test_oversized_rejected_before_upload(self, remote_backend, s3_client, run, make_upload):
        """Validation happens before any network call"""
        from cms_core.errors import UploadValidationError

        with pytest.raises(UploadValidationError):
            run(remote_backend.add_media_item(make_upload(6 * 1024 * 1024)))

        s3_client.put_object.assert_not_called()

    def test_upload_failure_writes_no_row(self, remote_backend, fake_supabase, s3_client, run, make_upload):
        """A rejected upload aborts before the metadata insert"""
        from cms_core.errors import MediaUploadError

        s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )

        with pytest.raises(MediaUploadError):
            run(remote_backend.add_media_item(make_upload(100)))

        assert ("insert", "media") not in fake_supabase.calls

    def test_insert_failure_leaves_logged_orphan(self, remote_backend, fake_supabase, s3_client, run,
                                                 make_upload, caplog):
        """The blob stays in the bucket and the orphan is logged"""
        from cms_core.errors import BackendOperationError

        fake_supabase.fail("insert", "media", RuntimeError("insert failed"))

        with pytest.raises(BackendOperationError):
            run(remote_backend.add_media_item(make_upload(100)))

        s3_client.put_object.assert_called_once()
        s3_client.delete_object.assert_not_called()
        assert "orphaned blob" in caplog.text

    def test_no_object_storage_configured(self, provider, event_bus, run, make_upload):
        """Without storage settings, uploads fail with a configuration error"""
        from cms_core.errors import ConfigurationError
        from cms_core.storage import RemoteBackend

        backend = RemoteBackend(provider, event_bus)

        with pytest.raises(ConfigurationError):
            run(backend.add_media_item(make_upload(100)))

    def test_delete_removes_row_and_blob(self, remote_backend, fake_supabase, s3_client, run, make_upload):
        """Deleting media removes the object by its key"""
        async def scenario():
            item = await remote_backend.add_media_item(make_upload(100), category="gallery")
            await remote_backend.delete_media_item(item["id"])
            return item

        item = run(scenario())

        key = item["url"][len(PUBLIC_PREFIX):]
        s3_client.delete_object.assert_called_once_with(Bucket="website-images", Key=key)
        assert fake_supabase.tables["media"] == []

    def test_blob_delete_failure_raises(self, remote_backend, fake_supabase, s3_client, run, make_upload, recorder):
        """A refused blob delete reaches the caller after the row is removed"""
        from cms_core.errors import MediaUploadError

        item = run(remote_backend.add_media_item(make_upload(100)))
        s3_client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
        )

        with pytest.raises(MediaUploadError) as exc_info:
            run(remote_backend.delete_media_item(item["id"]))

        assert exc_info.value.details["key"] == item["url"][len(PUBLIC_PREFIX):]
        assert fake_supabase.tables["media"] == []
        assert recorder[-1]["action"] == "deleted"
        assert recorder[-1]["id"] == item["id"]


class TestRemoteCategories:
    """Test category table operations"""

    def test_add_assigns_next_display_order(self, remote_backend, run):
        """Without display_order the category goes last"""
        async def scenario():
            await remote_backend.add_category({"name": "All", "display_order": 0})
            return await remote_backend.add_category({"name": "Glass Doors"})

        created = run(scenario())

        assert created["display_order"] == 1
        assert created["slug"] == "glass-doors"

    def test_reorder_updates_each_row(self, remote_backend, run):
        """display_order follows the given id order"""
        async def scenario():
            a = await remote_backend.add_category({"name": "A"})
            b = await remote_backend.add_category({"name": "B"})
            await remote_backend.reorder_categories([b["id"], a["id"]])
            return await remote_backend.get_categories()

        assert [c["name"] for c in run(scenario())] == ["B", "A"]


class TestRemoteImport:
    """Import replays records through normal writes"""

    def test_import_creates_testimonials_rows(self, remote_backend, fake_supabase, run):
        """Embedded testimonials become rows in their own table"""
        document = {
            "products": [{"id": 1, "name": "Rod", "category": "Steel"}],
            "content": {"hero": {"title": "Hi"}, "testimonials": [{"id": 1, "name": "A", "text": "Good"}]},
            "media": [{"id": "media_1", "url": "file:///x.png"}],
        }

        summary = run(remote_backend.import_data(document))

        assert summary == {"products": 1, "categories": 0, "testimonials": 1, "media_skipped": 1}
        assert len(fake_supabase.tables["testimonials"]) == 1
        # ids are re-assigned by the database, not carried over
        assert fake_supabase.tables["products"][0]["id"] >= 1000

    def test_count_rows(self, remote_backend, run):
        """Exact count from the database"""
        async def scenario():
            await remote_backend.add_product({"name": "A", "category": "Glass"})
            await remote_backend.add_product({"name": "B", "category": "Glass"})
            return await remote_backend.count_rows("products")

        assert run(scenario()) == 2
