"""
pcbooking - reservation scheduling for a shared pool of lab PCs.
"""

__version__ = "0.1.0"
