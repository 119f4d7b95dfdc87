"""
FileLizard: watch a directory and email a notification for every change.

Provides both a CLI and library API for running the watch service.
"""

__version__ = "0.1.0"
