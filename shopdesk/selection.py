# shopdesk/selection.py
# ---------------------------------------------------------
# Multi-select state for bulk actions. Selections survive filtering and
# paging: select-all only ever touches the ids the caller says are visible.
# ---------------------------------------------------------
from __future__ import annotations

import logging
from typing import Callable, FrozenSet, Iterable, List, Set

logger = logging.getLogger("uvicorn.error")

Eligibility = Callable[[str], bool]


class SelectionStore:
    """
    Set of selected record ids.

    `is_eligible` is supplied by the owner (it knows the loaded records).
    Ineligible ids are never added; removing is always allowed.
    """

    def __init__(self, is_eligible: Eligibility, name: str = "selection"):
        self._is_eligible = is_eligible
        self._selected: Set[str] = set()
        self.name = name

    # --- reads ---

    @property
    def selected(self) -> FrozenSet[str]:
        return frozenset(self._selected)

    def is_selected(self, record_id: str) -> bool:
        return record_id in self._selected

    def ids(self) -> List[str]:
        return sorted(self._selected)

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._selected

    def all_visible_selected(self, visible_ids: Iterable[str]) -> bool:
        eligible = [i for i in visible_ids if self._is_eligible(i)]
        return bool(eligible) and all(i in self._selected for i in eligible)

    # --- transitions ---

    def toggle(self, record_id: str) -> bool:
        """Flip one id. Returns whether it is selected afterwards."""
        if record_id in self._selected:
            self._selected.discard(record_id)
            return False
        if not self._is_eligible(record_id):
            logger.debug("[SELECTION] %s: ignoring ineligible id %s", self.name, record_id)
            return False
        self._selected.add(record_id)
        return True

    def select_all_visible(self, visible_ids: Iterable[str]) -> bool:
        """
        Page-scoped select-all.

        If every eligible visible id is already selected they are all
        deselected, otherwise all of them are selected. Ids outside
        `visible_ids` are left alone. Returns True when the call selected.
        """
        eligible = [i for i in dict.fromkeys(visible_ids) if self._is_eligible(i)]
        if not eligible:
            return False
        if all(i in self._selected for i in eligible):
            self._selected.difference_update(eligible)
            return False
        self._selected.update(eligible)
        return True

    def clear(self) -> None:
        self._selected.clear()

    def discard(self, record_ids: Iterable[str]) -> None:
        self._selected.difference_update(record_ids)

    def prune(self, valid_ids: Iterable[str]) -> int:
        """Drop ids missing from the fresh record list or no longer eligible. Returns how many went."""
        valid = set(valid_ids)
        stale = {i for i in self._selected if i not in valid or not self._is_eligible(i)}
        if stale:
            self._selected.difference_update(stale)
            logger.info("[SELECTION] %s: pruned %d stale id(s)", self.name, len(stale))
        return len(stale)
