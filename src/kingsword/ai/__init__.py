"""Clients for external language-model services."""
