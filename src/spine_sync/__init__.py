"""spine-sync -- provider-agnostic sync definitions for entity CRUD.

Resolves, for an (entity, provider, operation) triple, which strategy
services the operation, enforces the unclaimed filter policy and moves
payloads between backend records and entity instances.
"""

__version__ = "0.1.0"
