"""
Graph walks over the deck forest.

Decks only point at their parent, so every query here works on an arena:
a plain ``{deck_id: parent_id}`` dict loaded once by the caller. Each walk
keeps a visited set so a corrupted (cyclic) parent chain ends the walk
instead of looping forever.
"""

from collections import deque


def children_map(parents: dict[int, int | None]) -> dict[int, list[int]]:
    children: dict[int, list[int]] = {}
    for deck_id, parent_id in sorted(parents.items()):
        if parent_id is not None:
            children.setdefault(parent_id, []).append(deck_id)
    return children


def ancestors(parents: dict[int, int | None], deck_id: int) -> list[int]:
    """Parent, grandparent, ... up to the root. Excludes deck_id itself."""
    result: list[int] = []
    visited = {deck_id}
    current = parents.get(deck_id)
    while current is not None and current not in visited:
        visited.add(current)
        result.append(current)
        current = parents.get(current)
    return result


def is_descendant(parents: dict[int, int | None], ancestor_id: int, candidate_id: int) -> bool:
    """True if ancestor_id is reached walking up from candidate_id (inclusive)."""
    current = candidate_id
    visited: set[int] = set()
    while current is not None:
        if current in visited:
            return False
        visited.add(current)
        if current == ancestor_id:
            return True
        current = parents.get(current)
    return False


def descendant_ids(parents: dict[int, int | None], deck_id: int) -> list[int]:
    """Breadth-first list of every deck below deck_id (deck_id excluded)."""
    children = children_map(parents)
    result: list[int] = []
    visited = {deck_id}
    queue = deque([deck_id])

    while queue:
        current = queue.popleft()
        for child in children.get(current, []):
            if child in visited:
                continue
            visited.add(child)
            result.append(child)
            queue.append(child)

    return result
