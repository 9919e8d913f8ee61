"""
dbport

Versioned database export and import for a content-management dataset.

Supports:
- Exporting the live dataset to a single versioned JSON document
- Importing exports from 2.x, 3.x, 4.x and current releases
- Migrating old exports through declarative schema-history steps
- Conflict-tolerant import with per-record problem reporting
- Authorized backups written to durable storage
"""

__version__ = "0.1.0"
