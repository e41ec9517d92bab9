"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID, client IP, request timing logs)
- CORS for the public voting routes
"""

from launch_ledger.middleware.cors import CORSMiddleware
from launch_ledger.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
]
