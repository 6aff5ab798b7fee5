"""
Stats module - activity counts and the yearly heatmap.
"""
