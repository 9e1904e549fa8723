"""Pydantic schemas for Task API."""
