import pytest

from sirkit.differentiability import DifferentiabilityChecker, DifferentiabilityReport
from sirkit.sir import Block, DataType, Shape


def add_op(block, mnemonic, *operands):
    op = block.append_op(mnemonic)
    for value in operands:
        op.add_operand(value)
    op.add_result("", DataType.F32, Shape((3,)))
    return op


def test_continuous_block_is_differentiable():
    block = Block()
    x = block.add_argument(DataType.F32, Shape((3,)))
    add_op(block, "Add", x, x)
    add_op(block, "Relu", x)
    report = DifferentiabilityChecker().analyze(block)
    assert report.is_differentiable() is True
    assert report.violations == []


def test_violations_are_reported_in_block_order():
    block = Block()
    x = block.add_argument(DataType.F32, Shape((3,)))
    argmax = add_op(block, "ArgMax", x)
    add_op(block, "Add", x, x)
    einsum = add_op(block, "Einsum", x)

    report = DifferentiabilityChecker().analyze(block)
    assert report.is_differentiable() is False
    assert [v.op_mnemonic for v in report.violations] == ["ArgMax", "Einsum"]
    assert [v.node_name for v in report.violations] == [argmax.name, einsum.name]
    assert "discrete" in report.violations[0].reason
    assert "adjoint" in report.violations[1].reason


def test_empty_report_is_differentiable():
    assert DifferentiabilityReport().is_differentiable() is True


@pytest.mark.parametrize(
    "mnemonic",
    ["ArgMax", "ArgMin", "NonZero", "Sign", "Floor", "Ceil",
     "Round", "IsNaN", "IsInf", "Equal", "Greater", "Less"],
)
def test_discrete_ops(mnemonic):
    checker = DifferentiabilityChecker()
    assert checker.is_discrete_op(mnemonic) is True
    assert checker.is_missing_adjoint(mnemonic) is False


@pytest.mark.parametrize("mnemonic", ["Einsum", "DeformConv2D", "LpNormalization"])
def test_missing_adjoints(mnemonic):
    checker = DifferentiabilityChecker()
    assert checker.is_missing_adjoint(mnemonic) is True
    assert checker.is_discrete_op(mnemonic) is False


@pytest.mark.parametrize("mnemonic", ["Add", "MatMul", "Relu", "argmax"])
def test_ordinary_ops_are_neither(mnemonic):
    checker = DifferentiabilityChecker()
    assert checker.is_discrete_op(mnemonic) is False
    assert checker.is_missing_adjoint(mnemonic) is False