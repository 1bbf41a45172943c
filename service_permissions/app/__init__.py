"""
Permissions Service package.

Manages per-guild grants of the bot's moderation permission levels:
which roles and members hold MOD or ADMIN in a guild. It provides:

- app.main: HTTP surface for running `perms` commands and listing grants.
- app.commands: The `perms <level> add|del|list` command and reply payloads.
- app.grants: Grant editor (add/remove) and listing query service.
- app.entities: Guild snapshot models, search-term resolver, directory client.
- app.levels: Permission level ordering and authorization checks.
- app.persistence: Grant record stores and per-guild write locks.

Guidelines:
- Grant records are replaced whole, never patched in place.
- Edits hold the guild's write lock; reads take none.
- Errors become user-facing replies at the command boundary.
"""
