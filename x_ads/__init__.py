"""
Request-execution core for the X Ads command-line client.
"""

__version__ = "0.1.0"
