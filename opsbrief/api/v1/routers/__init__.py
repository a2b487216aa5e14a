# Ops Brief API v1 Routers
"""Routers grouped by endpoint family."""
