"""Canonical audit entry key names.

Formatters, sinks and test doubles read entries by these keys, so they are
kept in one place to avoid drift between producers and consumers.
"""

ACTION = "action"
CONTEXT = "context"
ENTITY_TYPE = "entity_type"
ENTITY_ID = "entity_id"
ACTOR_ID = "actor_id"
IP = "ip"
TIMESTAMP = "timestamp"
CHANGES = "changes"

# Changeset keys.
ID = "id"
OLD = "old"
NEW = "new"

# Origin context values.
CONTEXT_CLI = "cli"
CONTEXT_WEB = "web"
