"""
apimocker Error Injection

Probabilistic failure simulation for endpoints with ``errors`` rules.
"""

import random
from typing import Optional, Sequence, Tuple

from .config import ErrorRule


class ErrorInjector:
    """
    Decide whether a request should fail with a configured error.

    Rules are checked in order with an independent draw each; the first rule
    whose probability exceeds its draw wins and the rest are skipped.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def maybe_inject(self, rules: Sequence[ErrorRule]) -> Tuple[bool, Optional[ErrorRule]]:
        """
        Evaluate error rules for one request.

        Args:
            rules: Endpoint error rules in configured order

        Returns:
            (triggered, rule) where rule is None when nothing triggered
        """
        for rule in rules:
            if self.rng.random() < rule.probability:
                return True, rule
        return False, None
