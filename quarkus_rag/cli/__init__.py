"""Command-line interface for building the guide corpus."""
