"""Construction of the standard middle-end pass pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from sirkit.algebraic_simplifier import AlgebraicSimplifier
from sirkit.conv_lowering import ConvLowering
from sirkit.dead_code_elimination import DeadCodeElimination
from sirkit.differentiability import DifferentiabilityChecker
from sirkit.kernel_fuser import KernelFuser
from sirkit.pass_manager import PassContext, PassError, PassManager
from sirkit.sir import Block


class OptLevel(IntEnum):
    """Optimisation level of the middle-end pipeline."""

    O0 = 0
    O1 = 1
    O2 = 2
    O3 = 3


@dataclass(frozen=True)
class PipelineConfig:
    """Settings that shape the middle-end pipeline."""

    level: OptLevel = OptLevel.O2
    l1_cache_size: int = 32768
    enable_autodiff: bool = True
    strict_continuity_check: bool = True


class _ContinuityCheck:
    """Fails the pipeline when the block contains non-differentiable operations."""

    name = "continuity_check"

    def __init__(self) -> None:
        self._checker = DifferentiabilityChecker()

    def run(self, block: Block) -> bool:
        report = self._checker.analyze(block)
        if not report.is_differentiable():
            details = "; ".join(
                f"{v.op_mnemonic} at '{v.node_name}': {v.reason}" for v in report.violations
            )
            raise PassError(self.name, f"Block is not differentiable: {details}")
        return False


def build_middle_end_pipeline(config: Optional[PipelineConfig] = None) -> PassManager:
    """Build the pipeline: high-level fusion, DCE, conv lowering, low-level fusion, DCE.

    O0 only lowers convolutions, O1 adds dead-code elimination, O2 adds fusion
    and O3 adds algebraic simplification up front.
    """
    config = config if config is not None else PipelineConfig()
    if config.l1_cache_size <= 0:
        raise ValueError(f"l1_cache_size must be positive, got {config.l1_cache_size}")
    level = OptLevel(config.level)

    manager = PassManager(PassContext())
    if config.enable_autodiff and config.strict_continuity_check:
        manager.add_pass(_ContinuityCheck())
    if level >= OptLevel.O3:
        manager.add_pass(AlgebraicSimplifier())
    if level >= OptLevel.O2:
        manager.add_pass(KernelFuser())
    if level >= OptLevel.O1:
        manager.add_pass(DeadCodeElimination())
    manager.add_pass(ConvLowering())
    if level >= OptLevel.O2:
        manager.add_pass(KernelFuser())
    if level >= OptLevel.O1:
        manager.add_pass(DeadCodeElimination())
    return manager