# vulnscope/scans/__init__.py
"""
Scan API: submit assessment runs and read back scored findings.

Blueprint registration:
    from .scans import scans_bp
    app.register_blueprint(scans_bp)
"""

from .routes import scans_bp

__all__ = ["scans_bp"]
