"""Pydantic Schemas: response shapes for the HTTP boundary."""
