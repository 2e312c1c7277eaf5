"""Ingestion orchestration."""
