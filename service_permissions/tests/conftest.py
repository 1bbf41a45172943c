"""
Shared fixtures for permissions service tests.
"""

import pytest

from service_permissions.app.entities.models import Guild, Member, Role
from service_permissions.app.entities.resolver import EntityResolver
from service_permissions.app.grants.editor import GrantEditor
from service_permissions.app.grants.query import PermissionQueryService
from service_permissions.app.levels.hierarchy import PermissionLevelHierarchy
from service_permissions.app.persistence.locks import LocalGuildLocks
from service_permissions.app.persistence.store import InMemoryPermissionStore


GUILD_ID = "100"
BOT_OWNER_ID = "1"


@pytest.fixture
def everyone_role():
    return Role(id=GUILD_ID, name="@everyone", is_everyone=True)


@pytest.fixture
def moderators_role():
    return Role(id="201", name="Moderators")


@pytest.fixture
def admins_role():
    return Role(id="202", name="Admins")


@pytest.fixture
def guild_owner():
    return Member(id="900", username="alice", display_name="Alice")


@pytest.fixture
def member_bob(moderators_role):
    return Member(id="901", username="bob", display_name="Bobby", role_ids=(moderators_role.id,))


@pytest.fixture
def member_carol(admins_role):
    return Member(id="902", username="carol", role_ids=(admins_role.id,))


@pytest.fixture
def guild(everyone_role, moderators_role, admins_role, guild_owner, member_bob, member_carol):
    """Guild with an unassigned Moderators role and the guild owner as operator."""
    return Guild(
        id=GUILD_ID,
        roles=(everyone_role, moderators_role, admins_role),
        members=(guild_owner, member_bob, member_carol),
        owner_id=guild_owner.id,
    )


@pytest.fixture
def store():
    return InMemoryPermissionStore()


@pytest.fixture
def hierarchy():
    return PermissionLevelHierarchy(owner_id=BOT_OWNER_ID)


@pytest.fixture
def editor(store, hierarchy):
    return GrantEditor(store, hierarchy, resolver=EntityResolver(), locks=LocalGuildLocks(timeout=1.0), store_timeout=1.0)


@pytest.fixture
def query(store, hierarchy):
    return PermissionQueryService(store, hierarchy, store_timeout=1.0)
