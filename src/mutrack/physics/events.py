# src/mutrack/physics/events.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence, Tuple

from .hits import Hit
from .particles import GenParticle, PrimaryVertex
from .steps import Step


class HitCollection:
    """
    Ordered hits of exactly one event.

    Hits are kept in creation (transport) order, which is not necessarily
    grouped by track. The collection owns the storage for its hits; the
    integer returned by append() is the handle of the stored hit and stays
    valid until clear() is called at event end.
    """

    __slots__ = ("event_id", "_arena")

    def __init__(self, event_id: int, hits: Sequence[Hit] = ()) -> None:
        self.event_id = int(event_id)
        self._arena: List[Hit] = []
        for h in hits:
            self.append(h)

    def append(self, hit: Hit) -> int:
        if not isinstance(hit, Hit):
            raise TypeError(f"HitCollection only stores Hit records, got {type(hit)}")
        self._arena.append(hit)
        return len(self._arena) - 1

    def add_step(self, step: Step, post: bool = True) -> int:
        return self.append(Hit.from_step(step, post=post))

    def clear(self) -> None:
        self._arena.clear()

    @property
    def hits(self) -> Tuple[Hit, ...]:
        return tuple(self._arena)

    def __len__(self) -> int:
        return len(self._arena)

    def __iter__(self) -> Iterator[Hit]:
        return iter(self._arena)

    def __getitem__(self, handle: int) -> Hit:
        return self._arena[handle]

    def __repr__(self) -> str:
        return f"HitCollection(event_id={self.event_id}, n_hits={len(self._arena)})"

    def format(self) -> str:
        """
        Plain-text dump: an event banner followed by one line per hit, with a
        rule wherever the track id changes from the previous hit. Grouping
        follows encounter order only. Empty collections render as "".
        """
        n = len(self._arena)
        if not n:
            return ""

        side = "-" * (25 + len(str(self.event_id)) + len(str(n)))
        parts = [
            "\n\n",
            side, "\n",
            f"| Event: {self.event_id} | Hit Count: {n} |\n",
            side, "\n",
        ]

        track_id = -1
        for i, h in enumerate(self._arena):
            if i != 0 and h.track_id != track_id:
                bar = (162 + len(h.particle_name) + len(str(h.track_id))
                       + len(str(h.parent_id)) + len(h.volume))
                parts.append("-" * bar + "\n")
            track_id = h.track_id
            parts.append(h.format())

        parts.append("\n")
        return "".join(parts)

    def __str__(self) -> str:
        return self.format()


@dataclass(slots=True)
class EventRecord:
    """
    Everything the transport collaborator hands over for one event.

    extra holds the 16 auxiliary sequences (empty lists when absent).
    """
    event_id: int
    hits: HitCollection
    gen_particles: List[GenParticle] = field(default_factory=list)
    vertices: List[PrimaryVertex] = field(default_factory=list)
    extra: List[List[float]] = field(default_factory=lambda: [[] for _ in range(16)])
