"""
Application layer: configuration, database and models
"""
