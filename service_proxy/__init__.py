"""Caching reverse proxy service."""
