"""
Factory hierarchy REST API.
"""
