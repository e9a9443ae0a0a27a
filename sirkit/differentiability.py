"""Checks that every operation in a block supports reverse-mode differentiation."""

from __future__ import annotations

from dataclasses import dataclass, field

from sirkit.sir import Block

_DISCRETE_OPS = frozenset(
    {
        "ArgMax", "ArgMin", "NonZero", "Sign",
        "Floor", "Ceil", "Round", "IsNaN",
        "IsInf", "Equal", "Greater", "Less",
    }
)

# Continuous operations that currently have no registered adjoint kernel.
_MISSING_ADJOINTS = frozenset({"Einsum", "DeformConv2D", "LpNormalization"})

_DISCRETE_REASON = (
    "Operation is mathematically discrete and has no defined "
    "gradient (violates Continuity constraint)."
)
_MISSING_ADJOINT_REASON = (
    "Operation is continuous, but the Autodiff engine lacks "
    "a registered adjoint (gradient) kernel."
)


@dataclass(frozen=True)
class DifferentiabilityViolation:
    """One operation that breaks the continuity constraint."""

    node_name: str
    op_mnemonic: str
    reason: str


@dataclass
class DifferentiabilityReport:
    """All violations found in a block."""

    violations: list = field(default_factory=list)

    def is_differentiable(self) -> bool:
        return not self.violations


class DifferentiabilityChecker:
    """Flags discrete operations and operations lacking a gradient kernel."""

    def analyze(self, block: Block) -> DifferentiabilityReport:
        report = DifferentiabilityReport()
        for op in block:
            mnemonic = op.mnemonic
            if self.is_discrete_op(mnemonic):
                reason = _DISCRETE_REASON
            elif self.is_missing_adjoint(mnemonic):
                reason = _MISSING_ADJOINT_REASON
            else:
                continue
            report.violations.append(DifferentiabilityViolation(op.name, mnemonic, reason))
        return report

    def is_discrete_op(self, mnemonic: str) -> bool:
        return mnemonic in _DISCRETE_OPS

    def is_missing_adjoint(self, mnemonic: str) -> bool:
        return mnemonic in _MISSING_ADJOINTS