from __future__ import annotations

from typing import Protocol, Sequence

from mapnotes.domain.shapes import Shape


class MapWidget(Protocol):
    """Interface of the map view that renders and highlights shapes."""

    def render(self, shapes: Sequence[Shape]) -> None:
        ...

    def highlight(self, shape: Shape) -> None:
        ...

    def clear_highlight(self) -> None:
        ...


class NullMapWidget:
    """Headless widget used when no map view is attached."""

    def render(self, shapes: Sequence[Shape]) -> None:
        pass

    def highlight(self, shape: Shape) -> None:
        pass

    def clear_highlight(self) -> None:
        pass
