"""Peephole simplification by algebraic identities and strength reduction."""

from __future__ import annotations

from sirkit.logger import Logger
from sirkit.sir import Block, Operation, Value

_CONSTANT = "Constant"


def _scalar_payload(op: Operation):
    payload = op.get_attribute("value")
    if isinstance(payload, (list, tuple)):
        return payload[0] if len(payload) == 1 else None
    if isinstance(payload, (int, float)):
        return payload
    return None


def _is_scalar_constant(value: Value, block: Block, expected: float) -> bool:
    """Whether ``value`` comes from a ``Constant`` in ``block`` holding ``expected``."""
    producer = value.defining_op
    if producer is None or producer.mnemonic != _CONSTANT or producer.parent_block is not block:
        return False
    payload = _scalar_payload(producer)
    return payload is not None and float(payload) == expected


def _forward(block: Block, op: Operation, replacement: Value) -> None:
    """Send every use of ``op``'s result to ``replacement`` and drop ``op``."""
    if op.results:
        op.result(0).replace_all_uses_with(replacement)
    block.remove_op(op)


class AlgebraicSimplifier:
    """Applies identity removal and strength reduction until a fixed point."""

    name = "algebraic_simplifier"

    def run(self, block: Block) -> bool:
        """Simplify ``block`` until nothing changes; return True if anything did."""
        graph_changed = False
        while True:
            pass_changed = False
            for op in list(block):
                if op not in block:
                    continue
                rule = self._RULES.get(op.mnemonic)
                if rule is not None and rule(self, op, block):
                    pass_changed = True
            if not pass_changed:
                break
            graph_changed = True

        if graph_changed:
            Logger.debug("AlgebraicSimplifier: Optimization converged.")
        return graph_changed

    def _simplify_add(self, op: Operation, block: Block) -> bool:
        if len(op.operands) != 2:
            return False
        lhs, rhs = op.operands
        # x + 0 -> x
        if _is_scalar_constant(rhs, block, 0.0):
            keep = lhs
        elif _is_scalar_constant(lhs, block, 0.0):
            keep = rhs
        else:
            return False
        _forward(block, op, keep)
        return True

    def _simplify_mul(self, op: Operation, block: Block) -> bool:
        if len(op.operands) != 2:
            return False
        lhs, rhs = op.operands
        # x * 1 -> x, then x * 0 -> 0
        if _is_scalar_constant(rhs, block, 1.0):
            keep = lhs
        elif _is_scalar_constant(lhs, block, 1.0):
            keep = rhs
        elif _is_scalar_constant(rhs, block, 0.0):
            keep = rhs
        elif _is_scalar_constant(lhs, block, 0.0):
            keep = lhs
        else:
            return False
        _forward(block, op, keep)
        return True

    def _simplify_pow(self, op: Operation, block: Block) -> bool:
        if len(op.operands) != 2:
            return False
        base, exponent = op.operands

        # x ^ 2 -> x * x, keeping the result's name
        if _is_scalar_constant(exponent, block, 2.0):
            mul = Operation("Mul")
            mul.add_operand(base)
            mul.add_operand(base)
            block.insert_op_before(mul, op)
            if op.results:
                old = op.result(0)
                old.replace_all_uses_with(mul.add_result(old.id, old.dtype, old.shape))
            block.remove_op(op)
            return True

        # x ^ 1 -> x
        if _is_scalar_constant(exponent, block, 1.0):
            _forward(block, op, base)
            return True

        return False

    _RULES = {"Add": _simplify_add, "Mul": _simplify_mul, "Pow": _simplify_pow}