from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Set


@dataclass
class DraftNotificationState:
    draft_id: str
    league_id: Optional[str] = None
    start_notice_sent: bool = False
    start_notified_users: Set[int] = field(default_factory=set)
    last_pick_count: int = 0
    users_notified: Set[str] = field(default_factory=set)
    seen_in_progress: bool = False


class DraftStateStore:
    """Per-draft notification state owned by one draft job.

    Lives in memory only; a restart loses it and the job re-derives what it
    needs from upstream on the next tick.
    """

    def __init__(self) -> None:
        self._states: Dict[str, DraftNotificationState] = {}

    def get_or_create(self, draft_id: str, league_id: str | None = None) -> DraftNotificationState:
        state = self._states.get(draft_id)
        if state is None:
            state = DraftNotificationState(draft_id=draft_id, league_id=league_id)
            self._states[draft_id] = state
        return state

    def get(self, draft_id: str) -> DraftNotificationState | None:
        return self._states.get(draft_id)

    def discard(self, draft_id: str) -> bool:
        return self._states.pop(draft_id, None) is not None

    def discard_many(self, draft_ids: Iterable[str]) -> int:
        return sum(1 for draft_id in list(draft_ids) if self.discard(draft_id))

    def items(self) -> Iterator[tuple[str, DraftNotificationState]]:
        return iter(list(self._states.items()))

    def reset(self) -> None:
        self._states.clear()

    def __contains__(self, draft_id: str) -> bool:
        return draft_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)
