"""
Tests for owner-scoped conversation and message management.

Covers the store directly and the HTTP endpoints on top of it.
"""

import asyncio

import pytest

from velora.core.exceptions import StorageUnavailableError
from velora.services.conversation_store import ConversationStore
from velora.services.database import Database

# =============================================================================
# Store
# =============================================================================


@pytest.fixture
async def owners(auth_service):
    alice = await auth_service.register("alice@example.com", "Password123")
    bob = await auth_service.register("bob@example.com", "Password123")
    return alice.id, bob.id


class TestConversationStore:
    @pytest.mark.asyncio
    async def test_create_uses_placeholder_title(self, store, owners):
        alice, _ = owners

        conversation = await store.create_conversation(alice)

        assert conversation.title == "New Chat"
        assert conversation.owner_id == alice

    @pytest.mark.asyncio
    async def test_list_is_scoped_and_newest_updated_first(self, store, owners):
        alice, bob = owners
        first = await store.create_conversation(alice, title="first")
        await asyncio.sleep(0.01)
        second = await store.create_conversation(alice, title="second")
        await store.create_conversation(bob, title="bob's")

        assert [c.id for c in await store.list_conversations(alice)] == [second.id, first.id]

        await asyncio.sleep(0.01)
        await store.touch(first.id)

        assert [c.id for c in await store.list_conversations(alice)] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_rename_requires_ownership(self, store, owners):
        alice, bob = owners
        conversation = await store.create_conversation(alice)

        assert await store.rename_conversation(conversation.id, bob, "hijacked") is None
        assert (await store.get_conversation(conversation.id, alice)).title == "New Chat"

        renamed = await store.rename_conversation(conversation.id, alice, "Billing")
        assert renamed.title == "Billing"

    @pytest.mark.asyncio
    async def test_delete_cascades_to_messages(self, store, owners):
        alice, _ = owners
        doomed = await store.create_conversation(alice)
        survivor = await store.create_conversation(alice)
        for i in range(3):
            await store.add_message(doomed.id, "user", f"question {i}")
            await store.add_message(doomed.id, "assistant", f"answer {i}")
        await store.add_message(survivor.id, "user", "keep me")

        assert await store.delete_conversation(doomed.id, alice) is True

        assert await store.get_conversation(doomed.id, alice) is None
        async with store.database.session() as session:
            from sqlalchemy import func, select

            from velora.models import Message

            orphans = await session.scalar(
                select(func.count()).select_from(Message).where(Message.conversation_id == doomed.id)
            )
        assert orphans == 0
        assert [m.content for m in await store.list_messages(survivor.id, alice)] == ["keep me"]

    @pytest.mark.asyncio
    async def test_delete_not_owned(self, store, owners):
        alice, bob = owners
        conversation = await store.create_conversation(alice)
        await store.add_message(conversation.id, "user", "hello")

        assert await store.delete_conversation(conversation.id, bob) is False
        assert len(await store.list_messages(conversation.id, alice)) == 1

    @pytest.mark.asyncio
    async def test_messages_in_insertion_order(self, store, owners):
        alice, _ = owners
        conversation = await store.create_conversation(alice)
        contents = [f"message {i}" for i in range(6)]
        for i, content in enumerate(contents):
            await store.add_message(conversation.id, "user" if i % 2 == 0 else "assistant", content)

        messages = await store.list_messages(conversation.id, alice)

        assert [m.content for m in messages] == contents

    @pytest.mark.asyncio
    async def test_clear_messages(self, store, owners):
        alice, bob = owners
        conversation = await store.create_conversation(alice)
        await store.add_message(conversation.id, "user", "hello")

        assert await store.clear_messages(conversation.id, bob) is False
        assert len(await store.list_messages(conversation.id, alice)) == 1

        assert await store.clear_messages(conversation.id, alice) is True
        assert await store.list_messages(conversation.id, alice) == []
        assert await store.get_conversation(conversation.id, alice) is not None

    @pytest.mark.asyncio
    async def test_list_messages_not_owned(self, store, owners):
        alice, bob = owners
        conversation = await store.create_conversation(alice)

        assert await store.list_messages(conversation.id, bob) is None

    @pytest.mark.asyncio
    async def test_unconfigured_database(self, settings):
        store = ConversationStore(Database(settings.model_copy(update={"DATABASE_URL": None})))

        assert store.is_available is False
        with pytest.raises(StorageUnavailableError):
            await store.list_conversations("anyone")


# =============================================================================
# HTTP Endpoints
# =============================================================================


@pytest.mark.integration
class TestConversationEndpoints:
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("post", "/api/conversations"),
            ("get", "/api/conversations"),
            ("put", "/api/conversations/abc"),
            ("delete", "/api/conversations/abc"),
            ("get", "/api/messages/abc"),
            ("delete", "/api/messages/abc"),
        ],
    )
    def test_requires_token(self, client, method, path):
        kwargs = {"json": {"title": "x"}} if method == "put" else {}

        missing = getattr(client, method)(path, **kwargs)
        invalid = getattr(client, method)(path, headers={"Authorization": "Bearer not-a-token"}, **kwargs)

        assert missing.status_code == 401
        assert invalid.status_code == 401

    def test_create_and_list(self, client, auth_headers):
        created = client.post("/api/conversations", headers=auth_headers)

        assert created.status_code == 200
        conversation = created.json()
        assert conversation["title"] == "New Chat"

        listed = client.get("/api/conversations", headers=auth_headers).json()
        assert [c["id"] for c in listed] == [conversation["id"]]

    def test_list_sorted_by_update_time(self, client, auth_headers):
        ids = [client.post("/api/conversations", headers=auth_headers).json()["id"] for _ in range(3)]

        listed = [c["id"] for c in client.get("/api/conversations", headers=auth_headers).json()]
        assert listed == list(reversed(ids))

        client.put(f"/api/conversations/{ids[0]}", json={"title": "Bumped"}, headers=auth_headers)

        listed = client.get("/api/conversations", headers=auth_headers).json()
        assert listed[0]["id"] == ids[0]
        updated = [c["updated_at"] for c in listed]
        assert updated == sorted(updated, reverse=True)

    def test_users_only_see_their_own(self, client, auth_headers, other_auth_headers):
        client.post("/api/conversations", headers=auth_headers)

        assert client.get("/api/conversations", headers=other_auth_headers).json() == []

    def test_rename(self, client, auth_headers):
        conversation_id = client.post("/api/conversations", headers=auth_headers).json()["id"]

        response = client.put(
            f"/api/conversations/{conversation_id}",
            json={"title": "  Refund request "},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Refund request"

    def test_rename_blank_title_rejected(self, client, auth_headers):
        conversation_id = client.post("/api/conversations", headers=auth_headers).json()["id"]

        response = client.put(f"/api/conversations/{conversation_id}", json={"title": "   "}, headers=auth_headers)

        assert response.status_code == 400

    def test_rename_other_users_conversation_is_not_found(self, client, auth_headers, other_auth_headers):
        conversation_id = client.post("/api/conversations", headers=auth_headers).json()["id"]

        response = client.put(
            f"/api/conversations/{conversation_id}",
            json={"title": "Mine now"},
            headers=other_auth_headers,
        )

        assert response.status_code == 404
        listed = client.get("/api/conversations", headers=auth_headers).json()
        assert listed[0]["title"] == "New Chat"

    def test_delete_other_users_conversation_is_not_found(self, client, auth_headers, other_auth_headers):
        conversation_id = client.post("/api/conversations", headers=auth_headers).json()["id"]

        response = client.delete(f"/api/conversations/{conversation_id}", headers=other_auth_headers)

        assert response.status_code == 404
        assert len(client.get("/api/conversations", headers=auth_headers).json()) == 1

    def test_delete_removes_messages(self, client, auth_headers):
        conversation_id = client.post("/api/conversations", headers=auth_headers).json()["id"]
        client.post(
            f"/api/chat/{conversation_id}",
            json={"messages": [{"role": "user", "content": "Hi"}]},
            headers=auth_headers,
        )
        assert len(client.get(f"/api/messages/{conversation_id}", headers=auth_headers).json()) == 2

        response = client.delete(f"/api/conversations/{conversation_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Conversation deleted"}
        assert client.get(f"/api/messages/{conversation_id}", headers=auth_headers).status_code == 404
        assert client.get("/api/conversations", headers=auth_headers).json() == []

    def test_delete_unknown_conversation(self, client, auth_headers):
        assert client.delete("/api/conversations/does-not-exist", headers=auth_headers).status_code == 404

    def test_messages_of_other_user_not_found(self, client, auth_headers, other_auth_headers):
        conversation_id = client.post("/api/conversations", headers=auth_headers).json()["id"]

        assert client.get(f"/api/messages/{conversation_id}", headers=other_auth_headers).status_code == 404
        assert client.delete(f"/api/messages/{conversation_id}", headers=other_auth_headers).status_code == 404

    def test_clear_messages(self, client, auth_headers):
        conversation_id = client.post("/api/conversations", headers=auth_headers).json()["id"]
        client.post(
            f"/api/chat/{conversation_id}",
            json={"messages": [{"role": "user", "content": "Hi"}]},
            headers=auth_headers,
        )

        response = client.delete(f"/api/messages/{conversation_id}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Messages cleared"}
        assert client.get(f"/api/messages/{conversation_id}", headers=auth_headers).json() == []
