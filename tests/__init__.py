"""
aggstore Test Suite.

This package contains:
- unit/: Unit tests (in-memory store, fake DynamoDB client)
- integration/: Integration tests (concurrent writers, HTTP app over ASGI)
"""
