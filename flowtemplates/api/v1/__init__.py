"""
API v1 Package

REST API endpoints of the process template service - Version 1
"""

from . import templates

__all__ = ["templates"]
