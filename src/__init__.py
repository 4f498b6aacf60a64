"""Civitas - CRUD API for civic organizations and the people around them.

Architecture Overview:
- **API Layer**: FastAPI application, middleware pipeline and route table
- **Core Layer**: Configuration, logging, errors and other cross-cutting concerns
- **Infrastructure Layer**: Document persistence, identity provider and storage
"""
