from __future__ import annotations

from typing import Any, Callable, Sequence

from devshed_client.identifiers import entity_id, key_for


class Selector:
    """Cursor over a loaded collection, independent of how it is drawn.

    While :meth:`submit` or :meth:`run` is in progress the selector is busy,
    and further input (moves and submits) is dropped rather than queued.
    """

    def __init__(
        self,
        items: Sequence[Any],
        kind: str,
        current_id: str | None = None,
        title: str | None = None,
    ):
        self.items = list(items)
        self.kind = kind
        self.title = title
        self.current_id = current_id
        self.selected_index = 0
        self.busy = False

        if current_id:
            for index, item in enumerate(self.items):
                if entity_id(item) == current_id:
                    self.selected_index = index
                    break

    def __len__(self) -> int:
        return len(self.items)

    @property
    def keys(self) -> list[str]:
        return [key_for(item, index, self.kind) for index, item in enumerate(self.items)]

    @property
    def selected(self) -> Any | None:
        if not self.items:
            return None
        return self.items[self.selected_index]

    def move_up(self) -> None:
        if self.busy:
            return
        self.selected_index = max(0, self.selected_index - 1)

    def move_down(self) -> None:
        if self.busy:
            return
        self.selected_index = min(max(len(self.items) - 1, 0), self.selected_index + 1)

    def select_index(self, index: int) -> None:
        if self.busy:
            return
        if not 0 <= index < len(self.items):
            raise IndexError(f"Selection {index + 1} is out of range 1-{len(self.items)}")
        self.selected_index = index

    def select_key(self, answer: str) -> None:
        """Select by 1-based number, entity id or row key."""
        if answer.isdigit():
            self.select_index(int(answer) - 1)
            return
        if self.busy:
            return
        for index, (item, key) in enumerate(zip(self.items, self.keys)):
            if answer in (key, entity_id(item)):
                self.selected_index = index
                return
        raise KeyError(answer)

    def submit(self, action: Callable[[Any], Any]) -> Any | None:
        if not self.items:
            return None
        return self.run(lambda: action(self.selected))

    def run(self, action: Callable[[], Any]) -> Any | None:
        """Run an action that does not need the selected item, under the same busy guard."""
        if self.busy:
            return None

        self.busy = True
        try:
            return action()
        finally:
            self.busy = False
