"""
Shared infrastructure for the factory hierarchy backend.

Configuration, logging, database session management, security,
event bus and error types used by the REST API.
"""
