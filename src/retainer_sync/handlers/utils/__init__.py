"""Shared handler utilities: observability, error envelopes and HTTP helpers."""
