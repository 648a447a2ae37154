"""User directory (DuckDB).

Services:
    - UserDirectory: user records, persisted online flag, roster with unread counts.
"""
