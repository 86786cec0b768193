"""
Dispatch admin: administrative backend for the scheduled email dispatch worker
"""

__version__ = "1.0.0"
