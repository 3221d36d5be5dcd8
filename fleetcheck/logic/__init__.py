"""Checklist engine: normalization, encoding, progress, caching and orchestration."""
