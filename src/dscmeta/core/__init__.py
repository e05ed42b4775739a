"""Run context, configuration, process and filesystem helpers."""
