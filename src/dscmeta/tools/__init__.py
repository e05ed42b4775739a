"""Adapters for the external tools the checks drive."""
