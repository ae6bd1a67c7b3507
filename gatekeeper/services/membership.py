from __future__ import annotations

from typing import List, Set


class CommunityMembership:
    """People who have entered the verification flow at least once, plus the
    groups where verification runs.

    Only an admission hint for the private channel; the registry decides who
    is a resident.
    """

    def __init__(self) -> None:
        self._members: Set[str] = set()
        self._groups: Set[str] = set()

    def add(self, person_id: str) -> None:
        self._members.add(person_id)

    def remove(self, person_id: str) -> None:
        self._members.discard(person_id)

    def is_member(self, person_id: str) -> bool:
        return person_id in self._members

    def add_group(self, group_id: str) -> None:
        self._groups.add(group_id)

    def groups(self) -> List[str]:
        return sorted(self._groups)

    def __len__(self) -> int:
        return len(self._members)
