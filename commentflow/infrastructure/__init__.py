"""
Infrastructure layer: cache, resilience, HTTP clients, repositories, tasks
"""
