"""Integrations with the identity provider, and the application lifecycle."""
