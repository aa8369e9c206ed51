"""
Integration tests against a real Redis server.

test_redis_persistence.py drives PersistentCache over RedisClient: envelope
round trips and category invalidation. Skipped unless USE_REAL_REDIS=1.
"""
