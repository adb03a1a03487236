"""
Infrastructure: database sessions, request correlation, event bus.
"""
