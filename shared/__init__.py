"""
Shared infrastructure for the stream gateway: configuration and logging.
"""
