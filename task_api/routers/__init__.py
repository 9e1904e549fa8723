"""API routers for Task API."""
