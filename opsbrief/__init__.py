# opsbrief/__init__.py
"""Ops Brief - leadership view across ServiceNow, Salesforce and SharePoint."""

__version__ = "1.0.0"
__title__ = "Ops Brief API"
__description__ = "Fan out to ticketing, CRM and document sources and collapse them into one executive brief"
