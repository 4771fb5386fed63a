# vulnscope/technologies/__init__.py
"""
Technology API: manage tracked technologies and trigger CVE checks.
"""

from .routes import technologies_bp

__all__ = ["technologies_bp"]
