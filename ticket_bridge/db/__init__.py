"""Key-value storage backends.

Imports are intentionally NOT eagerly loaded here so the in-memory store
can be used without pulling in redis. Use explicit imports:
    from ticket_bridge.db.kv import InMemoryKeyValueStore
    from ticket_bridge.db.redis import RedisKeyValueStore
"""
