# Ops Brief API
"""HTTP surface of the Ops Brief service."""
