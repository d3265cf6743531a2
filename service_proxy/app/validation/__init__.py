"""
Input validation for proxied targets.
"""

from .url_guard import canonicalize_url, is_private_host, validate_target_url

__all__ = ["canonicalize_url", "is_private_host", "validate_target_url"]
