"""
Panlo Server - HTTP surface over the retrieval engine.

Run with:
    python -m panlo.server.app
"""
