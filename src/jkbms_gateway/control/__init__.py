"""Refresh orchestration and scheduling."""
