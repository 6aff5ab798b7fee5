"""
Practice Journal Backend.

A FastAPI backend for a personal practice journal: topics broken into
numbered goals, dated practice logs, a reusable content and repertoire
library, daily practice sessions and a yearly activity heatmap.
"""

__version__ = "0.1.0"
