# vulnscope/cve/__init__.py
"""
CVE tracking subsystem.

Components:
    base.py     : CveRecord, Technology, CveFetchResult
    severity.py : CVSS v3.1 / v2 severity normalizer
    client.py   : NvdClient, the single rate-limited gate to NVD
    tracker.py  : TechnologyTracker: per-technology and bulk checks
"""

from vulnscope.cve.base import CveFetchResult, CveRecord, Technology
from vulnscope.cve.client import NvdClient
from vulnscope.cve.tracker import TechnologyTracker, determine_security_status

__all__ = [
    "CveFetchResult",
    "CveRecord",
    "NvdClient",
    "Technology",
    "TechnologyTracker",
    "determine_security_status",
]
