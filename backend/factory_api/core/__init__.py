"""
Application wiring: CORS, error handlers, lifespan.
"""
