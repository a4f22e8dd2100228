"""Packaged reference data (site identity registry)."""
