"""Clients for remote recipe repositories."""
