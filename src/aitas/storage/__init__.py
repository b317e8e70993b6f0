"""
Storage subsystem.

Components:
- models.py: data structures (Task, Category, ReviewResult, ...)
- store.py: SQLite-backed storage + query/update helpers
"""
