"""Reverse-mode automatic differentiation over a block of named operations."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from sirkit.logger import Logger
from sirkit.sir import Block, Operation, Value


class GradientError(Exception):
    """The backward pass could not be built."""


def _find_value(block: Block, name: str) -> Value:
    """The block argument or operation result named ``name``."""
    for arg in block.arguments:
        if arg.id == name:
            return arg
    for op in block:
        for result in op.results:
            if result.id == name:
                return result
    raise GradientError(f"GradientBuilder: no value named '{name}' in block.")


def _emit(
    block: Block, name: str, mnemonic: str, operand_names: Iterable[str], like: Value
) -> Operation:
    """Append ``mnemonic`` reading the named values; its result mirrors ``like``."""
    operands = [_find_value(block, operand) for operand in operand_names]
    op = block.append_op(mnemonic)
    for operand in operands:
        op.add_operand(operand)
    op.add_result(name, like.dtype, like.shape)
    return op


class AdjointEnvironment:
    """Maps primal value names to the names of their accumulated gradients."""

    def __init__(self) -> None:
        self._adjoints: dict[str, str] = {}
        self._accumulation_counter = 0

    @property
    def gradients(self) -> dict:
        return dict(self._adjoints)

    def accumulate(self, primal_name: str, grad_name: str, block: Block) -> None:
        """Record ``grad_name`` for ``primal_name``, summing with any earlier gradient."""
        existing = self._adjoints.get(primal_name)
        if existing is None:
            self._adjoints[primal_name] = grad_name
            return

        # Fan-out: the multivariable chain rule sums the partial gradients.
        sum_name = f"{primal_name}_grad_acc_{self._accumulation_counter}"
        self._accumulation_counter += 1
        _emit(block, sum_name, "Add", (existing, grad_name), _find_value(block, existing))
        self._adjoints[primal_name] = sum_name

    def gradient(self, primal_name: str) -> Optional[str]:
        """Name of the current gradient of ``primal_name``, or ``None``."""
        return self._adjoints.get(primal_name)


VjpRule = Callable[[Operation, str, Block, AdjointEnvironment], bool]


def _add_rule(op: Operation, out_grad: str, block: Block, env: AdjointEnvironment) -> bool:
    # dL/dA = dL/dC, dL/dB = dL/dC
    if len(op.operands) != 2:
        return False
    for operand in op.operands:
        env.accumulate(operand.id, out_grad, block)
    return True


def _matmul_rule(op: Operation, out_grad: str, block: Block, env: AdjointEnvironment) -> bool:
    # dL/dA = dL/dC @ B^T, dL/dB = A^T @ dL/dC
    if len(op.operands) < 2:
        return False
    a, b = op.operands[:2]
    a_grad = f"{op.name}_grad_A"
    b_grad = f"{op.name}_grad_B"
    _emit(block, a_grad, "MatMulGradA", (out_grad, b.id), a)
    _emit(block, b_grad, "MatMulGradB", (a.id, out_grad), b)
    env.accumulate(a.id, a_grad, block)
    env.accumulate(b.id, b_grad, block)
    return True


def _relu_rule(op: Operation, out_grad: str, block: Block, env: AdjointEnvironment) -> bool:
    # dL/dX = dL/dY * (X > 0)
    if not op.operands:
        return False
    x = op.operand(0)
    x_grad = f"{op.name}_grad_X"
    _emit(block, x_grad, "ReluGrad", (out_grad, x.id), x)
    env.accumulate(x.id, x_grad, block)
    return True


_VJP_RULES: dict[str, VjpRule] = {
    "Add": _add_rule,
    "MatMul": _matmul_rule,
    "Relu": _relu_rule,
}

_NO_UPSTREAM = frozenset({"Constant", "Variable"})


class GradientBuilder:
    """Weaves a backward pass into a topologically sorted forward block."""

    def build_gradients(self, block: Block, loss_node: str) -> AdjointEnvironment:
        """Append gradient operations for every value feeding ``loss_node``.

        Returns the environment mapping primal names to gradient names.
        Raises GradientError on unknown values or operators without a rule.
        """
        env = AdjointEnvironment()
        seed = self._inject_loss_seed(block, loss_node)
        env.accumulate(loss_node, seed, block)

        for op in reversed(list(block)):
            out_grad = env.gradient(op.name)
            if out_grad is None:
                continue
            if op.mnemonic in _NO_UPSTREAM:
                continue

            rule = _VJP_RULES.get(op.mnemonic)
            if rule is None:
                message = (
                    f"GradientBuilder: Missing VJP rule for operator '{op.mnemonic}' "
                    f"at node '{op.name}'."
                )
                Logger.error(message)
                raise GradientError(message)

            if not rule(op, out_grad, block, env):
                message = f"GradientBuilder: VJP application failed for operator '{op.mnemonic}'."
                Logger.error(message)
                raise GradientError(message)

        return env

    def _inject_loss_seed(self, block: Block, loss_node: str) -> str:
        """Append dL/dL = ones_like(loss) and return its name."""
        loss = _find_value(block, loss_node)
        seed_name = f"{loss_node}_grad_seed"
        _emit(block, seed_name, "OnesLike", (loss_node,), loss)
        return seed_name