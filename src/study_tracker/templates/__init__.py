"""Packaged configuration templates."""
