"""Residential listings ingestion: source adapters, normalization and upsert."""
