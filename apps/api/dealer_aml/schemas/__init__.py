"""Pydantic schemas for request/response payloads."""
