"""
Unit tests for the remote session client and the synced session manager.
"""

import httpx
import pytest

from shopmind.core.exceptions import RemoteSessionNotFoundError, RemoteUnavailableError
from shopmind.core.session_manager import SessionLifecycleManager, SessionState
from shopmind.sync import ClearHistoryPolicy, RemoteSessionClient, SyncedSessionManager

from conftest import make_message, make_product, make_session


def synced(store, key, remote, policy=ClearHistoryPolicy.RESET, clock=None):
    manager = SessionLifecycleManager(store, key, clock=clock)
    return SyncedSessionManager(manager, remote.client(), clear_policy=policy)


class TestRemoteSessionClient:
    """Tests for RemoteSessionClient."""

    def test_headers(self):
        client = RemoteSessionClient(base_url="http://remote.test/api/", token="tok")
        headers = client._get_headers(session_id="session_1")
        assert headers["Authorization"] == "Bearer tok"
        assert headers["X-Session-ID"] == "session_1"
        assert client.base_url == "http://remote.test/api"

    @pytest.mark.asyncio
    async def test_create_session(self, remote):
        created = await remote.client().create_session("ada@example.com")
        assert created.session_id == "session_1"
        assert remote.sessions["session_1"]["userId"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_fetch_rebuilds_metadata(self, remote):
        client = remote.client()
        await client.create_session("ada@example.com")
        await client.append_message("session_1", make_message("red shoes"))
        await client.append_message(
            "session_1", make_message("found", sender="bot", products=[make_product("Shoes")])
        )

        session = await client.fetch_session("session_1")
        assert session.metadata.message_count == 2
        assert session.metadata.search_queries == ["red shoes"]
        assert session.metadata.categories == ["Shoes"]

    @pytest.mark.asyncio
    async def test_fetch_not_found(self, remote):
        with pytest.raises(RemoteSessionNotFoundError):
            await remote.client().fetch_session("session_404")

    @pytest.mark.asyncio
    async def test_fetch_malformed_payload(self, remote):
        remote.malformed_fetch = True
        with pytest.raises(RemoteUnavailableError, match="Malformed"):
            await remote.client().fetch_session("session_1")

    @pytest.mark.asyncio
    async def test_transport_error(self, remote):
        remote.fail_fetch = True
        with pytest.raises(RemoteUnavailableError):
            await remote.client().fetch_session("session_1")

    @pytest.mark.asyncio
    async def test_http_error(self, remote):
        remote.fail_create = True
        with pytest.raises(RemoteUnavailableError, match="503"):
            await remote.client().create_session("ada@example.com")

    @pytest.mark.asyncio
    async def test_update_session_metadata(self, remote):
        client = remote.client()
        await client.create_session("ada@example.com")
        ended = make_session("session_1", minutes=5)
        assert await client.update_session_metadata(ended)
        assert "endTime" in remote.sessions["session_1"]


class TestSyncedSessionManager:
    """Tests for SyncedSessionManager."""

    @pytest.mark.asyncio
    async def test_create_adopts_server_id(self, store, key, remote):
        context = synced(store, key, remote)
        session = await context.restore_or_create()

        assert session.session_id == "session_1"
        assert context.is_remote()
        assert [e.session_id for e in await store.list_index()] == ["session_1"]

    @pytest.mark.asyncio
    async def test_create_offline_stays_local(self, store, key, remote):
        remote.fail_create = True
        context = synced(store, key, remote)
        session = await context.restore_or_create()

        assert session.session_id.startswith("local_")
        assert not context.is_remote()
        assert await store.load(session.session_id) is not None

    @pytest.mark.asyncio
    async def test_restore_prefers_remote(self, store, key, remote):
        client = remote.client()
        await client.create_session("ada@example.com")
        await client.append_message("session_1", make_message("blue hat"))

        context = synced(store, key.with_session("session_1"), remote)
        session = await context.restore_or_create()

        assert session.session_id == "session_1"
        assert session.metadata.search_queries == ["blue hat"]
        # Adopted copy is persisted locally
        assert (await store.load("session_1")).metadata.message_count == 1

    @pytest.mark.asyncio
    async def test_restore_falls_back_to_local(self, store, key, remote):
        await store.save(make_session("session_7", messages=[make_message("local only")]))
        remote.fail_fetch = True

        context = synced(store, key.with_session("session_7"), remote)
        session = await context.restore_or_create()
        assert session.session_id == "session_7"
        assert session.metadata.message_count == 1
        assert context.is_remote()

    @pytest.mark.asyncio
    async def test_provisional_session_restored_offline_stays_local(self, store, key, remote):
        await store.save(make_session("local_abc", messages=[make_message("green scarf")]))
        remote.fail_fetch = True

        context = synced(store, key.with_session("local_abc"), remote)
        session = await context.restore_or_create()
        assert session.session_id == "local_abc"
        assert not context.is_remote()

        remote.fail_fetch = False
        assert await context.ensure_remote()
        await context.drain()

        assert context.current.session_id == "session_1"
        assert await store.load("local_abc") is None
        assert [m["content"] for m in remote.sessions["session_1"]["messages"]] == ["green scarf"]

    @pytest.mark.asyncio
    async def test_restore_not_found_creates(self, store, key, remote):
        context = synced(store, key.with_session("session_gone"), remote)
        session = await context.restore_or_create()
        assert session.session_id == "session_1"
        assert ("GET", "/chat/session/session_gone") in remote.calls

    @pytest.mark.asyncio
    async def test_add_message_mirrors(self, store, key, remote):
        context = synced(store, key, remote)
        await context.restore_or_create()
        await context.add_message(make_message("Show me laptops"))
        await context.drain()

        assert [m["content"] for m in remote.sessions["session_1"]["messages"]] == ["Show me laptops"]
        assert ("PUT", "/chat/session/session_1") in remote.calls

    @pytest.mark.asyncio
    async def test_mirror_failure_keeps_local_message(self, store, key, remote):
        context = synced(store, key, remote)
        await context.restore_or_create()
        remote.fail_append = True

        message = make_message("Show me laptops")
        session = await context.add_message(message)
        await context.drain()

        assert session.messages[-1] == message
        loaded = await store.load(session.session_id)
        assert loaded.messages[-1] == message
        assert remote.sessions["session_1"]["messages"] == []
        assert context.pending_tasks == 0

    @pytest.mark.asyncio
    async def test_local_only_session_not_mirrored(self, store, key, remote):
        remote.fail_create = True
        context = synced(store, key, remote)
        await context.restore_or_create()
        await context.add_message(make_message("hello there"))
        await context.drain()

        assert not any(path == "/chat/send" for _, path in remote.calls)

    @pytest.mark.asyncio
    async def test_ensure_remote_replays(self, store, key, remote):
        remote.fail_create = True
        context = synced(store, key, remote)
        provisional = await context.restore_or_create()
        await context.add_message(make_message("red shoes"))

        remote.fail_create = False
        assert await context.ensure_remote()
        await context.drain()

        assert context.current.session_id == "session_1"
        assert await store.load(provisional.session_id) is None
        assert [m["content"] for m in remote.sessions["session_1"]["messages"]] == ["red shoes"]

    @pytest.mark.asyncio
    async def test_end_session_mirrors(self, store, key, remote):
        context = synced(store, key, remote)
        await context.restore_or_create()
        ended = await context.end_session()
        await context.drain()

        assert ended.is_ended
        assert context.state == SessionState.ENDED
        assert "endTime" in remote.sessions["session_1"]
        assert await context.end_session() is None

    @pytest.mark.asyncio
    async def test_clear_reset_policy(self, store, key, remote):
        context = synced(store, key, remote)
        session = await context.restore_or_create()
        await context.add_message(make_message("red hat"))
        cleared = await context.clear_history()
        await context.drain()

        assert cleared.session_id == session.session_id
        assert cleared.metadata.message_count == 0

    @pytest.mark.asyncio
    async def test_clear_recreate_policy(self, store, key, remote):
        context = synced(store, key, remote, policy=ClearHistoryPolicy.RECREATE)
        old = await context.restore_or_create()
        await context.add_message(make_message("red hat"))
        fresh = await context.clear_history()
        await context.drain()

        assert fresh.session_id == "session_2"
        assert fresh.messages == []
        assert (await store.load(old.session_id)).is_ended
        assert len(await store.list_index()) == 2

    @pytest.mark.asyncio
    async def test_clear_recreate_offline(self, store, key, remote):
        context = synced(store, key, remote, policy=ClearHistoryPolicy.RECREATE)
        old = await context.restore_or_create()
        remote.fail_create = True

        fresh = await context.clear_history()
        assert fresh.session_id.startswith("local_")
        assert fresh.session_id != old.session_id

    @pytest.mark.asyncio
    async def test_noops_without_session(self, store, key, remote):
        context = synced(store, key, remote)
        assert await context.add_message(make_message("early")) is None
        assert await context.end_session() is None
        assert await context.clear_history() is None
        assert remote.calls == []


class TestMockTransportSanity:
    """Guards the fake remote used above."""

    @pytest.mark.asyncio
    async def test_unknown_route(self, remote):
        async with httpx.AsyncClient(transport=httpx.MockTransport(remote.handle)) as client:
            resp = await client.get("http://remote.test/api/nothing")
        assert resp.status_code == 404
