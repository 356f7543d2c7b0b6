"""Brandforge command-line client."""
