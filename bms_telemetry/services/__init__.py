"""Ingestion, aggregation and site status services."""
