"""Aggregation pipeline: fetchers, pricing, spam filtering and orchestration."""
