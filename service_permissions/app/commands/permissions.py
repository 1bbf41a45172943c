"""
The `perms` command: add, remove and list grants of a permission level.

    perms <level> add <role/user>
    perms <level> remove|del|delete <role/user>
    perms <level> list|ls
"""

from typing import Dict, List, Optional, Sequence

from shared.logging import get_logger, set_command_context
from shared.errors import PermissionsException
from ..entities.models import GRANTABLE_LEVELS, Guild, Member, PermissionLevel
from ..grants.editor import GrantEditor
from ..grants.query import PermissionQueryService
from .replies import CommandReply


ADD_ALIASES = ("add",)
REMOVE_ALIASES = ("remove", "del", "delete")
LIST_ALIASES = ("list", "ls")


class PermissionsCommand:
    """Grant management for one permission level."""

    def __init__(self, level: PermissionLevel, editor: GrantEditor,
                 query: PermissionQueryService, prefix: str = ";;", logger=None):
        self.level = level
        self.editor = editor
        self.query = query
        self.prefix = prefix
        self.logger = logger or get_logger("permissions.command")

    @property
    def name(self) -> str:
        return f"perms {self.level.value}"

    def help(self) -> str:
        usage = "\n".join([
            f"{self.prefix}{self.name} add <role/user>",
            f"{self.prefix}{self.name} del <role/user>",
            f"{self.prefix}{self.name} list",
        ])
        return f"```\n{usage}\n```\nAdd, remove or list the users and roles with the `{self.level.name}` permissions."

    async def invoke(self, guild: Guild, operator: Member, args: Sequence[str]) -> CommandReply:
        """`args[0]` is the subcommand, the rest is the search term."""
        set_command_context(guild_id=guild.id, operator_id=operator.id)

        if not args:
            return self._help_reply(operator)

        subcommand = args[0].lower()
        term = " ".join(args[1:]).strip()

        if subcommand in ADD_ALIASES or subcommand in REMOVE_ALIASES:
            return await self._edit(guild, operator, subcommand, term)
        if subcommand in LIST_ALIASES:
            return await self._list(guild, operator)

        return self._help_reply(operator)

    async def _edit(self, guild: Guild, operator: Member, subcommand: str, term: str) -> CommandReply:
        if not term:
            # Permission is checked before the missing-term help is shown
            try:
                await self.editor.authorize(guild, operator)
            except PermissionsException as e:
                return CommandReply.text(operator.effective_name, e.message, ok=False, code=e.code)
            return self._help_reply(operator)

        if subcommand in ADD_ALIASES:
            result = await self.editor.add(guild, operator, self.level, term)
        else:
            result = await self.editor.remove(guild, operator, self.level, term)

        return CommandReply.text(
            operator.effective_name,
            result.message,
            ok=result.ok,
            code=result.code,
            candidates=result.candidates
        )

    async def _list(self, guild: Guild, operator: Member) -> CommandReply:
        try:
            listing = await self.query.list(guild, operator, self.level)
        except PermissionsException as e:
            self.logger.error("Listing grants failed", guild_id=guild.id, permission_level=self.level.name, code=e.code)
            return CommandReply.text(operator.effective_name, e.message, ok=False, code=e.code)

        return CommandReply.from_listing(listing)

    def _help_reply(self, operator: Member) -> CommandReply:
        return CommandReply.text(operator.effective_name, self.help(), ok=False, code="MISSING_ARGUMENT")


class PermissionsCommandGroup:
    """Routes `perms <level> ...` to the per-level command."""

    def __init__(self, editor: GrantEditor, query: PermissionQueryService, prefix: str = ";;"):
        self.prefix = prefix
        self.commands: Dict[PermissionLevel, PermissionsCommand] = {
            level: PermissionsCommand(level, editor, query, prefix=prefix)
            for level in GRANTABLE_LEVELS
        }

    def get(self, level_name: str) -> Optional[PermissionsCommand]:
        try:
            return self.commands.get(PermissionLevel(level_name.lower()))
        except ValueError:
            return None

    def help(self) -> str:
        levels = "|".join(level.value for level in self.commands)
        return f"```\n{self.prefix}perms <{levels}> <add|del|list> [role/user]\n```"

    async def invoke(self, guild: Guild, operator: Member, tokens: List[str]) -> CommandReply:
        """`tokens` as typed after the prefix, e.g. ["perms", "mod", "add", "Moder"]."""
        if tokens and tokens[0].lower() == "perms":
            tokens = tokens[1:]

        command = self.get(tokens[0]) if tokens else None
        if command is None:
            return CommandReply.text(operator.effective_name, self.help(), ok=False, code="MISSING_ARGUMENT")

        return await command.invoke(guild, operator, tokens[1:])
