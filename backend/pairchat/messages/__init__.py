"""Message storage (DuckDB).

Services:
    - MessageStore: create, bulk mark-read, ordered history, unread counts.
"""
