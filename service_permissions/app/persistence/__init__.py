"""
Persistence package for grant records.

- store: Store interface and in-memory implementation.
- postgres: PostgreSQL store, one JSONB row per guild.
- locks: Per-guild write locks (asyncio or Redis).
"""
