"""Shared helpers: logging, HTTP transport and archive handling."""
