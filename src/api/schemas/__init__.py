"""Pydantic schema models for API responses.

Resources themselves are schemaless JSON documents; the models here describe
the envelopes around them (result pages, health and service status).
"""
