"""
Shared utilities: exceptions and pydantic schemas.
"""
