"""
Logs module - dated practice entries and the stats fan-out.
"""
