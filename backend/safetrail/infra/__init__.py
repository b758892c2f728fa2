"""Shared infrastructure clients: PostgreSQL and Redis."""
