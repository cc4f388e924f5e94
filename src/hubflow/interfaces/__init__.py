"""Clients for collaborators outside the flow engine."""
