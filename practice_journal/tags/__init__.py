"""
Tag registry - normalized, deduplicated free-text tags.
"""
