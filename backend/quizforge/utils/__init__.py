"""Shared helpers for text handling and LLM output parsing."""
