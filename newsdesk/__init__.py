"""Newsdesk article body editor backend."""
