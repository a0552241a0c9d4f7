"""
pingmany - ping many IP addresses in a short time.
"""

__version__ = "1.0.0"
