# Ops Brief Middleware
"""HTTP middleware for the Ops Brief API."""
