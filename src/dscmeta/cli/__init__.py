"""Command line interface for dscmeta."""
