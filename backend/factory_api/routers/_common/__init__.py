"""
Shared router helpers.
"""
