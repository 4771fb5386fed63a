# vulnscope/scanner/__init__.py
"""
Assessment engine.

Components:
    base.py      : data structures + FindingSampler interface
    templates.py : finding template catalog, grouped by check type
    generator.py : ProbabilisticSampler (depth-weighted catalog sampling)
    lifecycle.py : ScanManager: pending → running → terminal state machine
"""

from vulnscope.scanner.base import FindingDraft, FindingSampler, ScanConfig, SecurityFinding, SecurityScan
from vulnscope.scanner.generator import ProbabilisticSampler
from vulnscope.scanner.lifecycle import ScanManager

__all__ = [
    "FindingDraft",
    "FindingSampler",
    "ProbabilisticSampler",
    "ScanConfig",
    "ScanManager",
    "SecurityFinding",
    "SecurityScan",
]
