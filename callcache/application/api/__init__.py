"""
Admin HTTP API for the cache engine.
"""
