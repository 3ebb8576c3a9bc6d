"""Shared utilities: logging, configuration, exceptions."""
