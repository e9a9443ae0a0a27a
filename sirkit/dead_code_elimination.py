"""Mark-and-sweep removal of operations that do not reach a root."""

from __future__ import annotations

from sirkit.logger import Logger
from sirkit.sir import Block, Operation

_TERMINATORS = frozenset({"sc_high.return", "sc_low.return", "sc_high.yield"})


class DeadCodeElimination:
    """Removes every operation that no return, memory or control-flow op depends on."""

    name = "sc_low.dce"

    def run(self, block: Block) -> bool:
        """Prune dead operations; return True if any were removed."""
        live: set = set()
        worklist: list[Operation] = []
        for op in block:
            if self.is_root_operation(op):
                live.add(op)
                worklist.append(op)

        while worklist:
            current = worklist.pop()
            for operand in current.operands:
                producer = operand.defining_op
                if producer is not None and producer not in live:
                    live.add(producer)
                    worklist.append(producer)

        dead = [op for op in block if op not in live]
        if not dead:
            return False

        for op in reversed(dead):
            block.remove_op(op)

        Logger.info(f"DeadCodeElimination: removed {len(dead)} dead op(s).")
        return True

    def is_root_operation(self, op: Operation) -> bool:
        """Whether ``op`` must be kept regardless of its uses."""
        if op.mnemonic in _TERMINATORS:
            return True
        return op.is_memory_op() or op.is_control_flow()