"""
Identity module - bearer token verification.
"""
