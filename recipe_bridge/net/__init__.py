"""Networking helpers shared by remote clients."""
