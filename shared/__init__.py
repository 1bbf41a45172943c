"""
Shared utilities for the guild permissions service.

This package aggregates common building blocks:

- config: Service configuration via pydantic-settings
- logging: Structured logging with command correlation
- errors: Canonical error types and responses
- retry: Retry decorator for read-only external calls
- base_service: FastAPI service shell

Do not import from service_permissions into shared/.
"""
