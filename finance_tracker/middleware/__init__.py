"""ASGI middleware for access logging and security headers."""
