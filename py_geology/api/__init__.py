"""
HTTP inspection API for in-memory worlds.
"""
