"""
Fragment Registry

Write-once map from unit id to its finalized fragment. Dependents look up
their imports here; a lookup for a unit that has not been published means the
visitation order was broken.
"""

import threading
from typing import Dict, List

from .errors import DuplicateFragmentError, MissingFragmentError
from .graph import Graph


class FragmentRegistry:
    """
    Thread-safe, write-once registry of published fragments.

    Published graphs are frozen, so readers need no locking.
    """

    def __init__(self):
        self._fragments: Dict[str, Graph] = {}
        self._lock = threading.Lock()

    def publish(self, unit: str, fragment: Graph) -> Graph:
        """Freeze and register a unit's fragment. Each unit publishes once."""
        fragment.freeze()
        with self._lock:
            if unit in self._fragments:
                raise DuplicateFragmentError(f"fragment for {unit!r} already published")
            self._fragments[unit] = fragment
        return fragment

    def get(self, unit: str, requested_by: str = "") -> Graph:
        try:
            return self._fragments[unit]
        except KeyError:
            raise MissingFragmentError(unit, requested_by) from None

    def units(self) -> List[str]:
        return sorted(self._fragments)

    def __contains__(self, unit: str) -> bool:
        return unit in self._fragments

    def __len__(self) -> int:
        return len(self._fragments)
