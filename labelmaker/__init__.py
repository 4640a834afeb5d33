"""
Labelmaker: per-repository GitHub web hooks with verified callbacks.
"""

__version__ = "0.2.0"
