"""Adapters connecting the domain to HTTP services and local storage."""
