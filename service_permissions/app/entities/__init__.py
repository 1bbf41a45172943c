"""
Guild entity package.

Holds the guild snapshot models (roles, members, grant records), the
resolver that turns an operator's search term into a single role or
member, and the directory client that fetches guild snapshots.
"""
