"""Linear-scan assignment of arena offsets to transient tensors."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import NamedTuple

from sirkit.logger import Logger
from sirkit.sir import Block, Shape, Value

# Every element is assumed to occupy the size of a 32-bit float.
_ELEMENT_BYTES = 4


@dataclass(frozen=True)
class TensorAllocation:
    """Where one tensor lives inside the arena."""

    offset_bytes: int
    size_bytes: int


@dataclass
class ArenaLayout:
    """Offsets of every mapped tensor and the arena's peak size."""

    total_arena_size_bytes: int = 0
    mappings: dict = field(default_factory=dict)


class MapperError(Exception):
    """The arena layout could not be computed."""


class _LiveInterval(NamedTuple):
    value: Value
    start_tick: int
    end_tick: int
    size_bytes: int


class _ActiveBlock(NamedTuple):
    start_offset: int
    end_offset: int
    free_after_tick: int


class ArenaMapper:
    """Computes non-overlapping arena offsets using liveness intervals."""

    name = "arena_mapper"

    def __init__(self, alignment: int = 32) -> None:
        if alignment <= 0 or alignment & (alignment - 1):
            raise ValueError(f"alignment must be a positive power of two, got {alignment}")
        self.alignment = alignment

    def run(self, block: Block) -> ArenaLayout:
        """Assign an offset to every operation result in ``block``.

        Raises MapperError if any result has a dynamic shape.
        """
        Logger.info("ArenaMapper: Starting workspace memory allocation.")

        intervals = sorted(self._compute_liveness(block), key=lambda iv: iv.start_tick)
        layout = ArenaLayout()
        active: list[_ActiveBlock] = []

        for interval in intervals:
            active = sorted(
                (ab for ab in active if ab.free_after_tick > interval.start_tick),
                key=lambda ab: ab.start_offset,
            )

            offset = 0
            for ab in active:
                if offset + interval.size_bytes <= ab.start_offset:
                    break
                offset = ab.end_offset

            layout.mappings[interval.value] = TensorAllocation(offset, interval.size_bytes)
            end = offset + interval.size_bytes
            active.append(_ActiveBlock(offset, end, interval.end_tick))
            layout.total_arena_size_bytes = max(layout.total_arena_size_bytes, end)

        Logger.info(
            "ArenaMapper: Allocation complete. Peak workspace size: "
            f"{layout.total_arena_size_bytes} bytes."
        )
        return layout

    def _compute_liveness(self, block: Block) -> list:
        birth: dict = {}
        death: dict = {}
        for tick, op in enumerate(block):
            for result in op.results:
                birth[result] = tick
                death[result] = tick
            for operand in op.operands:
                if operand in death:
                    death[operand] = tick

        return [
            _LiveInterval(value, start, death[value], self._aligned_size(value))
            for value, start in birth.items()
        ]

    def _aligned_size(self, value: Value) -> int:
        dims = value.shape.dims
        if any(d == Shape.DYNAMIC for d in dims):
            raise MapperError(
                f"ArenaMapper requires static shapes. Found dynamic dimension in {value.id}."
            )
        raw = math.prod(dims) * _ELEMENT_BYTES
        return (raw + self.alignment - 1) & ~(self.alignment - 1)