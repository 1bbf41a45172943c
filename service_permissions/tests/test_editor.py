"""
Unit tests for the grant editor.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from redis.exceptions import ConnectionError as RedisConnectionError

from service_permissions.app.entities.models import GrantRecord, Guild, Member, PermissionLevel, Role
from service_permissions.app.grants.editor import GrantEditor
from service_permissions.app.persistence.locks import LocalGuildLocks, RedisGuildLocks
from shared.errors import PersistenceFailure


class TestGrantEditorAdd:
    """Test cases for GrantEditor.add."""

    @pytest.mark.asyncio
    async def test_add_resolves_uniquely_and_persists(self, editor, store, guild, guild_owner, moderators_role):
        result = await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moder")

        assert result.ok is True
        assert result.message == "Added `Moderators` to `MOD`."
        assert result.entity_id == moderators_role.id

        record = await store.read(guild.id)
        assert record.get(PermissionLevel.MOD) == (moderators_role.id,)

    @pytest.mark.asyncio
    async def test_add_member_reports_account_name(self, editor, store, guild, guild_owner, member_bob):
        result = await editor.add(guild, guild_owner, PermissionLevel.ADMIN, "Bobby")

        assert result.ok is True
        assert result.message == "Added `bob` to `ADMIN`."

    @pytest.mark.asyncio
    async def test_add_twice_is_noop(self, editor, store, guild, guild_owner, moderators_role):
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        with patch.object(store, "upsert", wraps=store.upsert) as upsert:
            second = await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        assert second.ok is False
        assert second.code == "NO_MATCH"
        upsert.assert_not_called()

        record = await store.read(guild.id)
        assert record.get(PermissionLevel.MOD) == (moderators_role.id,)

    @pytest.mark.asyncio
    async def test_add_keeps_insertion_order(self, editor, store, guild, guild_owner):
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "Admins")
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "carol")

        record = await store.read(guild.id)
        assert record.get(PermissionLevel.MOD) == ("202", "201", "902")

    @pytest.mark.asyncio
    async def test_add_ambiguous_makes_no_change(self, editor, store, guild_owner):
        guild = Guild(
            id="300",
            roles=(Role(id="301", name="Moderator"), Role(id="302", name="Moderators-Trainee")),
            members=(guild_owner,),
            owner_id=guild_owner.id,
        )

        with patch.object(store, "upsert", wraps=store.upsert) as upsert:
            result = await editor.add(guild, guild_owner, PermissionLevel.MOD, "Mod")

        assert result.ok is False
        assert result.code == "AMBIGUOUS_MATCH"
        assert {c.name for c in result.candidates} == {"Moderator", "Moderators-Trainee"}
        assert "Moderators-Trainee" in result.message
        upsert.assert_not_called()
        assert (await store.read(guild.id)).is_empty()

    @pytest.mark.asyncio
    async def test_add_unknown_term(self, editor, guild, guild_owner):
        result = await editor.add(guild, guild_owner, PermissionLevel.MOD, "nobody")

        assert result.ok is False
        assert result.code == "NO_MATCH"
        assert "`nobody`" in result.message

    @pytest.mark.asyncio
    async def test_unauthorized_add_does_no_resolution(self, store, hierarchy, guild, member_bob):
        resolver = MagicMock()
        editor = GrantEditor(store, hierarchy, resolver=resolver)

        result = await editor.add(guild, member_bob, PermissionLevel.MOD, "Moder")

        assert result.ok is False
        assert result.code == "INSUFFICIENT_PERMISSION"
        resolver.search.assert_not_called()
        resolver.normalize.assert_not_called()

    @pytest.mark.asyncio
    async def test_mod_cannot_edit_even_mod_level(self, editor, store, guild, guild_owner, member_bob):
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        result = await editor.add(guild, member_bob, PermissionLevel.MOD, "carol")

        assert result.code == "INSUFFICIENT_PERMISSION"

    @pytest.mark.asyncio
    async def test_granted_admin_can_edit(self, editor, store, guild, guild_owner, member_carol):
        await editor.add(guild, guild_owner, PermissionLevel.ADMIN, "Admins")

        result = await editor.add(guild, member_carol, PermissionLevel.MOD, "bob")

        assert result.ok is True

    @pytest.mark.asyncio
    async def test_bot_owner_can_edit(self, editor, guild):
        bot_owner = Member(id="1", username="botowner")

        result = await editor.add(guild, bot_owner, PermissionLevel.ADMIN, "carol")

        assert result.ok is True

    @pytest.mark.asyncio
    async def test_owner_level_not_editable(self, editor, guild, guild_owner):
        result = await editor.add(guild, guild_owner, PermissionLevel.OWNER, "carol")

        assert result.ok is False
        assert result.code == "LEVEL_NOT_EDITABLE"

    @pytest.mark.asyncio
    async def test_missing_term(self, editor, guild, guild_owner):
        result = await editor.add(guild, guild_owner, PermissionLevel.MOD, "   ")

        assert result.code == "MISSING_ARGUMENT"


class TestGrantEditorRemove:
    """Test cases for GrantEditor.remove."""

    @pytest.mark.asyncio
    async def test_add_then_remove_round_trip(self, editor, store, guild, guild_owner):
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "carol")
        before = (await store.read(guild.id)).get(PermissionLevel.MOD)

        await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")
        result = await editor.remove(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        assert result.ok is True
        assert result.message == "Removed `Moderators` from `MOD`."
        assert (await store.read(guild.id)).get(PermissionLevel.MOD) == before

    @pytest.mark.asyncio
    async def test_remove_not_granted_is_noop(self, editor, store, guild, guild_owner):
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "carol")

        with patch.object(store, "upsert", wraps=store.upsert) as upsert:
            result = await editor.remove(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        assert result.ok is False
        assert result.code == "NO_MATCH"
        upsert.assert_not_called()
        assert (await store.read(guild.id)).get(PermissionLevel.MOD) == ("902",)

    @pytest.mark.asyncio
    async def test_remove_matches_only_granted_entities(self, editor, store, guild, guild_owner):
        # "o" hits many names guild-wide but only one granted entity
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        result = await editor.remove(guild, guild_owner, PermissionLevel.MOD, "o")

        assert result.ok is True
        assert (await store.read(guild.id)).get(PermissionLevel.MOD) == ()

    @pytest.mark.asyncio
    async def test_remove_ignores_stale_ids(self, editor, store, guild, guild_owner, moderators_role):
        await store.upsert(GrantRecord("100", {PermissionLevel.MOD: ("555", moderators_role.id)}))

        result = await editor.remove(guild, guild_owner, PermissionLevel.MOD, "555")

        assert result.code == "NO_MATCH"
        assert (await store.read(guild.id)).get(PermissionLevel.MOD) == ("555", moderators_role.id)

    @pytest.mark.asyncio
    async def test_remove_keeps_stale_ids_of_others(self, editor, store, guild, guild_owner, moderators_role):
        await store.upsert(GrantRecord("100", {PermissionLevel.MOD: ("555", moderators_role.id)}))

        result = await editor.remove(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        assert result.ok is True
        assert (await store.read(guild.id)).get(PermissionLevel.MOD) == ("555",)

    @pytest.mark.asyncio
    async def test_persistence_failure_leaves_grant(self, editor, store, guild, guild_owner, moderators_role):
        await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        with patch.object(store, "upsert", new_callable=AsyncMock) as upsert:
            upsert.side_effect = PersistenceFailure("Could not save permissions")
            result = await editor.remove(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        assert result.ok is False
        assert result.code == "PERSISTENCE_FAILURE"
        assert (await store.read(guild.id)).get(PermissionLevel.MOD) == (moderators_role.id,)

    @pytest.mark.asyncio
    async def test_store_timeout_is_persistence_failure(self, store, hierarchy, guild, guild_owner):
        editor = GrantEditor(store, hierarchy, store_timeout=0.01)

        async def slow_upsert(record):
            await asyncio.sleep(1)

        with patch.object(store, "upsert", side_effect=slow_upsert):
            result = await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        assert result.code == "PERSISTENCE_FAILURE"
        assert (await store.read(guild.id)).is_empty()


class TestGrantEditorConcurrency:
    """Concurrent edits against one guild."""

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_not_lost(self, store, hierarchy, guild, guild_owner):
        editor = GrantEditor(store, hierarchy, locks=LocalGuildLocks(timeout=5.0))
        original_read = store.read

        async def slow_read(guild_id):
            record = await original_read(guild_id)
            await asyncio.sleep(0.01)
            return record

        with patch.object(store, "read", side_effect=slow_read):
            results = await asyncio.gather(
                editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators"),
                editor.add(guild, guild_owner, PermissionLevel.MOD, "Admins"),
                editor.add(guild, guild_owner, PermissionLevel.MOD, "carol"),
            )

        assert all(r.ok for r in results)
        record = await store.read(guild.id)
        assert set(record.get(PermissionLevel.MOD)) == {"201", "202", "902"}

    @pytest.mark.asyncio
    async def test_redis_release_failure_after_write_still_succeeds(self, store, hierarchy, guild, guild_owner,
                                                                   moderators_role):
        redis_lock = MagicMock()
        redis_lock.acquire = AsyncMock(return_value=True)
        redis_lock.release = AsyncMock(side_effect=RedisConnectionError("reset"))
        locks = RedisGuildLocks("redis://localhost:6379/0", timeout=1.0)
        locks.redis = MagicMock()
        locks.redis.lock.return_value = redis_lock
        editor = GrantEditor(store, hierarchy, locks=locks)

        result = await editor.add(guild, guild_owner, PermissionLevel.MOD, "Moderators")

        assert result.ok is True
        assert result.message == "Added `Moderators` to `MOD`."
        assert (await store.read(guild.id)).get(PermissionLevel.MOD) == (moderators_role.id,)
        redis_lock.release.assert_awaited_once()
