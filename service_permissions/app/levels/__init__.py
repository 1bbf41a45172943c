"""
Permission level ordering and authorization checks.
"""
