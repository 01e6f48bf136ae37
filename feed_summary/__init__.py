"""Summaries for feed entries, kept in step across list and detail views."""
