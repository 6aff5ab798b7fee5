"""
Topics module - topics and numbered goals.
"""
