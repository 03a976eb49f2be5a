"""Shared utilities for the library API."""
