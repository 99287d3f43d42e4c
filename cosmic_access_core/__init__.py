"""Cosmic CRM API access token authentication and rate limiting."""

__version__ = "0.1.0"
