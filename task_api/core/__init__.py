"""Core modules for Task API."""
