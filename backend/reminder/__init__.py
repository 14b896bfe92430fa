"""
Reminder service: periodically asks the evaluation pipeline to re-evaluate stale repositories
"""
__version__ = "0.1.0"
