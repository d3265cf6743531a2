"""
Request coalescing: one upstream fetch per key, fanned out to every waiter.
"""

from .coalescer import PendingFetch, RequestCoalescer

__all__ = ["PendingFetch", "RequestCoalescer"]
