"""
Assembly Factory - low-code UI assembly backend
"""

__version__ = "0.1.0"
