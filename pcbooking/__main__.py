"""
Convenience entry point for running pcbooking directly.

Usage: python -m pcbooking [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
