"""Upstream service clients."""
