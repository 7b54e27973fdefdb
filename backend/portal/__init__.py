"""Application package for the learning portal backend.

This package exposes the question, session, catalog and identity
modules used by the FastAPI application in `portal.main`. Individual
modules contain the concrete implementations and documentation.
"""
