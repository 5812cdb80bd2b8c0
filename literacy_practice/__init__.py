"""Application package for the reading-comprehension practice backend.

This package exposes the service, repository, grading and model modules
used by the FastAPI application. It is intentionally lightweight;
individual modules contain the concrete implementations and
documentation.
"""
