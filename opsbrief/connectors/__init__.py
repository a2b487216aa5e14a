# Ops Brief Connectors
"""Adapters for ServiceNow, Salesforce, SharePoint (Microsoft Graph) and Gemini."""
