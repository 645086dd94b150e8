"""
Unit Tests

Unit tests run without external services. Database-backed tests use
SQLite through aiosqlite instead of PostgreSQL.
"""
