"""Runs a pipeline of IR passes with timing, optional IR dumps and verification."""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from typing import Optional, Protocol, TextIO

from sirkit.logger import Logger
from sirkit.sir import Block


class Pass(Protocol):
    """A transformation over a block; ``run`` returns True if it changed the IR."""

    name: str

    def run(self, block: Block) -> bool: ...


@dataclass
class PassContext:
    """Options controlling how the pipeline is executed."""

    print_ir_after_all: bool = False
    verify_each: bool = True
    ir_stream: Optional[TextIO] = None


class PassError(Exception):
    """A pass pipeline failed."""

    def __init__(self, pass_name: str, message: str) -> None:
        super().__init__(message)
        self.pass_name = pass_name


class VerificationError(PassError):
    """The block failed structural verification after a pass."""

    def __init__(self, pass_name: str) -> None:
        super().__init__(pass_name, f"Verification failed after pass: {pass_name}")


def _pass_name(pass_) -> str:
    return getattr(pass_, "name", None) or type(pass_).__name__


class PassManager:
    """Holds an ordered list of passes and runs them over a block."""

    def __init__(self, context: Optional[PassContext] = None) -> None:
        self.context = context if context is not None else PassContext()
        self._passes: list = []

    @property
    def passes(self) -> tuple:
        return tuple(self._passes)

    def add_pass(self, pass_) -> None:
        """Append ``pass_`` to the pipeline; ``None`` is ignored."""
        if pass_ is not None:
            self._passes.append(pass_)

    def run(self, block: Block) -> bool:
        """Run every pass in order; return True if any of them changed the block.

        Raises VerificationError if verification is enabled and a mutating pass
        leaves the block structurally invalid.
        """
        changed_overall = False
        Logger.info(
            f"PassManager: Initiating pipeline execution ({len(self._passes)} registered passes)."
        )

        for pass_ in self._passes:
            name = _pass_name(pass_)
            start = time.perf_counter_ns()
            mutated = bool(pass_.run(block))
            elapsed_us = (time.perf_counter_ns() - start) // 1000
            changed_overall |= mutated

            if not mutated:
                Logger.debug(f"[PassManager] Skipped '{name}' (0 mutations, {elapsed_us} \u00b5s)")
                continue

            Logger.info(f"[PassManager] Applied '{name}' ({elapsed_us} \u00b5s)")

            if self.context.print_ir_after_all:
                stream = self.context.ir_stream or sys.stdout
                stream.write(f"\n=== SIR After {name} ===\n")
                stream.write(str(block))
                stream.write("======================================\n")

            if self.context.verify_each and not block.validate():
                Logger.error(f"Verification failed after pass: {name}")
                raise VerificationError(name)

        Logger.info("PassManager: Pipeline execution completed successfully.")
        return changed_overall