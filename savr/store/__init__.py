"""
Local persistence.

Responsibilities:
- In-memory document collections with simple queries and atomic batches.
- Media files (recipe images) under a configurable directory.
"""
