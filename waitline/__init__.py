"""
waitline - current wait times for St. Louis area urgent care and emergency departments.
"""

__version__ = "1.0.0"
