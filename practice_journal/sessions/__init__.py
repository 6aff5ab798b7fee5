"""
Sessions module - the daily practice session.
"""
