# vulnscope/scanner/generator.py
"""
Probabilistic finding sampler.

Stand-in for real checks: every template of every requested check type
is included independently with a depth-dependent probability. Output
size and composition therefore vary between runs with the same input.

    quick     0.3
    standard  0.5
    deep      0.7
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional

from vulnscope.scanner.base import FindingDraft, FindingSampler
from vulnscope.scanner.templates import FindingTemplate, get_templates

logger = logging.getLogger(__name__)

FINDING_PROBABILITY = {
    "quick": 0.3,
    "standard": 0.5,
    "deep": 0.7,
}


def _draft_from_template(tmpl: FindingTemplate, scan_id: str, check_type: str, target: str) -> FindingDraft:
    return FindingDraft(
        scan_id=scan_id,
        category=check_type,
        severity=tmpl.severity,
        title=tmpl.title,
        description=tmpl.description,
        recommendation=tmpl.recommendation,
        affected_resource=target,
        evidence=tmpl.evidence,
        reference_links=list(tmpl.reference_links),
        compliance_tags=list(tmpl.compliance_tags),
    )


class ProbabilisticSampler(FindingSampler):
    """
    Per-template Bernoulli sampling over the template catalog.

    Pass a seeded random.Random to get reproducible output in tests.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    @property
    def name(self) -> str:
        return "probabilistic"

    def generate(
        self,
        scan_id: str,
        target: str,
        check_types: List[str],
        depth: str,
    ) -> List[FindingDraft]:
        probability = FINDING_PROBABILITY[depth]
        drafts: List[FindingDraft] = []

        for check_type in check_types:
            for tmpl in get_templates(check_type):
                if self._rng.random() < probability:
                    drafts.append(_draft_from_template(tmpl, scan_id, check_type, target))

        logger.debug(
            "Sampled %d finding(s) for scan %s (%s, depth=%s)",
            len(drafts), scan_id, ",".join(check_types), depth,
        )
        return drafts
