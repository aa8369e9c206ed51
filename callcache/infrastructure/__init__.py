"""
Infrastructure Layer

Cache tiers, the Redis substrate, the orchestrator and Prometheus metrics.
"""
