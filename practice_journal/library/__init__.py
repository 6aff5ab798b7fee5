"""
Library module - content, repertoire, tags and repertoire stats.
"""
