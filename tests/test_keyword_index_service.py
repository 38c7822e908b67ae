"""Tests for the keyword index service and its lock."""

import dataclasses
import threading
import time

from directory_search.core.models.profile import ProfileRecord
from directory_search.core.services.keyword_index_service import (
    KeywordIndexService,
    ReadWriteLock,
)
from directory_search.infrastructure.stores.memory_store import InMemoryProfileStore

from conftest import make_profiles, make_projects


class TestKeywordIndexService:
    def test_search_before_build_is_empty(self, store):
        service = KeywordIndexService(store)

        assert not service.is_built
        assert service.search("python") == []

    def test_build_indexes_profiles_and_projects(self, store):
        service = KeywordIndexService(store)

        stats = service.build()

        assert service.is_built
        assert stats.document_count == 6
        ids = {h.id for h in service.search("python")}
        assert {"profile:u1", "profile:u4", "project:p1"} <= ids

    def test_ensure_built_builds_once(self, store):
        service = KeywordIndexService(store)

        service.ensure_built()
        built_at = service.built_at
        service.ensure_built()

        assert service.built_at == built_at

    def test_refresh_picks_up_store_changes(self, store, keyword_index):
        store.put_profile(
            ProfileRecord(user_id="u9", handle="zig", display_name="Zed", skills=["Zig"])
        )
        assert keyword_index.search("zig") == []

        keyword_index.refresh()

        assert [h.id for h in keyword_index.search("zig")] == ["profile:u9"]

    def test_upsert_and_remove(self, keyword_index):
        keyword_index.upsert("profile:u2", "Linus Haskell wizard")

        assert [h.id for h in keyword_index.search("haskell")] == ["profile:u2"]
        assert "profile:u2" not in {h.id for h in keyword_index.search("rust")}

        keyword_index.remove("profile:u2")

        assert keyword_index.search("haskell") == []
        assert keyword_index.stats().document_count == 5

    def test_upsert_before_build_creates_index(self, store):
        service = KeywordIndexService(store)

        service.upsert("profile:x", "elixir phoenix")

        assert [h.id for h in service.search("elixir")] == ["profile:x"]

    def test_concurrent_reads_and_writes(self, keyword_index):
        errors = []

        def reader():
            try:
                for _ in range(200):
                    keyword_index.search("python berlin")
            except Exception as e:
                errors.append(e)

        def writer():
            try:
                for i in range(100):
                    keyword_index.upsert(f"profile:w{i}", f"python writer {i}")
                    keyword_index.remove(f"profile:w{i}")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        threads.append(threading.Thread(target=writer))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert keyword_index.stats().document_count == 6


class GatedStore(InMemoryProfileStore):
    """Blocks inside ``list_projects`` until released."""

    def __init__(self, *args):
        super().__init__(*args)
        self.snapshot_taken = threading.Event()
        self.release = threading.Event()
        self.profile_reads = 0

    def list_profiles(self):
        self.profile_reads += 1
        return super().list_profiles()

    def list_projects(self):
        self.snapshot_taken.set()
        assert self.release.wait(timeout=5)
        return super().list_projects()


class TestRebuildConcurrency:
    def test_upsert_during_rebuild_survives_swap(self):
        store = GatedStore(make_profiles(), make_projects())
        service = KeywordIndexService(store)

        builder = threading.Thread(target=service.build)
        builder.start()
        assert store.snapshot_taken.wait(timeout=5)

        linus = store.get_profiles(["u2"])["u2"]
        store.put_profile(dataclasses.replace(linus, bio="zoltan rustacean"))
        writer = threading.Thread(
            target=service.upsert, args=("profile:u2", "zoltan rustacean")
        )
        writer.start()
        time.sleep(0.05)
        assert writer.is_alive()

        store.release.set()
        builder.join(timeout=5)
        writer.join(timeout=5)

        assert [h.id for h in service.search("rustacean")] == ["profile:u2"]

    def test_remove_during_rebuild_survives_swap(self):
        store = GatedStore(make_profiles(), make_projects())
        service = KeywordIndexService(store)

        builder = threading.Thread(target=service.build)
        builder.start()
        assert store.snapshot_taken.wait(timeout=5)
        remover = threading.Thread(target=service.remove, args=("project:p2",))
        remover.start()

        store.release.set()
        builder.join(timeout=5)
        remover.join(timeout=5)

        assert service.search("palette") == []

    def test_concurrent_first_searches_build_once(self):
        store = GatedStore(make_profiles(), make_projects())
        service = KeywordIndexService(store)

        threads = [threading.Thread(target=service.ensure_built) for _ in range(3)]
        for t in threads:
            t.start()
        assert store.snapshot_taken.wait(timeout=5)
        time.sleep(0.05)
        store.release.set()
        for t in threads:
            t.join(timeout=5)

        assert store.profile_reads == 1
        assert service.is_built


class TestReadWriteLock:
    def test_readers_share(self):
        lock = ReadWriteLock()

        with lock.read():
            acquired = threading.Event()

            def second_reader():
                with lock.read():
                    acquired.set()

            t = threading.Thread(target=second_reader)
            t.start()
            assert acquired.wait(timeout=1)
            t.join()

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []

        def reader():
            with lock.read():
                events.append("read")

        with lock.write():
            t = threading.Thread(target=reader)
            t.start()
            time.sleep(0.05)
            events.append("write-done")

        t.join(timeout=1)
        assert events == ["write-done", "read"]
