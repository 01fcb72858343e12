"""
Cross-cutting infrastructure helpers.
"""
