# ============================================================================
# MODULE CONTEXT - RESULT ASSEMBLER
# ============================================================================
# STATUS: Core Engine - merge, dedup, order
# PURPOSE: Build one ResultSet from the containment and proximity passes
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ResultAssembler
# DEPENDENCIES: none beyond engine models
# ============================================================================

"""
Result Assembler.

Features are keyed by id. A containing entry is authoritative: a later
non-containing duplicate is discarded, and a containing duplicate replaces a
non-containing one in place. Otherwise the first occurrence wins.

Final order is containing first, then ascending distance; ties keep
encounter order.
"""

from typing import Dict, Iterable, List

from .models import EvaluatedFeature


class ResultAssembler:

    def __init__(self, capped_miles: float):
        self.capped_miles = capped_miles
        self._by_id: Dict[str, EvaluatedFeature] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, feature_id: str) -> bool:
        return feature_id in self._by_id

    def add(self, feature: EvaluatedFeature) -> bool:
        """Insert one feature; returns False when it was discarded."""
        if not feature.is_containing and feature.distance_miles > self.capped_miles:
            return False

        existing = self._by_id.get(feature.id)
        if existing is None:
            self._by_id[feature.id] = feature
            return True
        if feature.is_containing and not existing.is_containing:
            self._by_id[feature.id] = feature
            return True
        return False

    def add_all(self, features: Iterable[EvaluatedFeature]) -> int:
        return sum(1 for feature in features if self.add(feature))

    def containing_ids(self) -> set:
        return {fid for fid, feature in self._by_id.items() if feature.is_containing}

    def assemble(self) -> List[EvaluatedFeature]:
        """Sorted, de-duplicated ResultSet."""
        return sorted(
            self._by_id.values(),
            key=lambda f: (not f.is_containing, f.distance_miles)
        )
