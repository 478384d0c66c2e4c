"""
Practitioner availability and appointment conflict checking.
"""

__version__ = "0.1.0"
