"""Shared helpers: config loading and input staging."""
