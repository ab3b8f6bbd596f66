"""
LogTrace - demo log management backend

Indexes log events into Elasticsearch, serves dashboard statistics,
enforces per-service retention and ships a synthetic log simulator.
"""

__version__ = "1.0.0"
