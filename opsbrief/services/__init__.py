# Ops Brief Services
"""Service layer: credential resolution, fan-out, brief building and LLM polish."""
