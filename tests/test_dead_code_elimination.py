import pytest

from sirkit.dead_code_elimination import DeadCodeElimination
from sirkit.sir import Block, DataType, Operation, Shape


def add_op(block, mnemonic, *operands, with_result=True):
    op = block.append_op(mnemonic)
    for value in operands:
        op.add_operand(value)
    if with_result:
        op.add_result("", DataType.F32, Shape((4,)))
    return op


def test_removes_unused_op_and_keeps_returned_chain():
    block = Block()
    x = block.add_argument(DataType.F32, Shape((4,)))
    dead = add_op(block, "sc_high.relu", x)
    live = add_op(block, "sc_high.add", x, x)
    ret = add_op(block, "sc_high.return", live.result(), with_result=False)

    assert DeadCodeElimination().run(block) is True
    assert block.operations == (live, ret)
    assert dead not in block


def test_nothing_to_remove_returns_false():
    block = Block()
    x = block.add_argument(DataType.F32, Shape((4,)))
    op = add_op(block, "sc_high.relu", x)
    add_op(block, "sc_low.return", op.result(), with_result=False)
    assert DeadCodeElimination().run(block) is False
    assert len(block) == 2


def test_dead_chain_is_fully_removed_and_uses_dropped():
    block = Block()
    x = block.add_argument(DataType.F32, Shape((4,)))
    first = add_op(block, "sc_high.relu", x)
    add_op(block, "sc_high.relu", first.result())
    assert DeadCodeElimination().run(block) is True
    assert len(block) == 0
    assert x.has_no_uses()


def test_memory_and_control_flow_ops_are_roots():
    block = Block()
    x = block.add_argument(DataType.F32, Shape((4,)))
    producer = add_op(block, "sc_high.relu", x)
    store = add_op(block, "sc_mem.store", producer.result(), with_result=False)
    branch = add_op(block, "sc_ctrl.br", with_result=False)
    assert DeadCodeElimination().run(block) is False
    assert block.operations == (producer, store, branch)


def test_empty_block_is_unchanged():
    block = Block()
    assert DeadCodeElimination().run(block) is False
    assert len(block) == 0


@pytest.mark.parametrize(
    "mnemonic, expected",
    [
        ("sc_high.return", True),
        ("sc_low.return", True),
        ("sc_high.yield", True),
        ("sc_mem.store", True),
        ("sc_ctrl.branch", True),
        ("sc_high.relu", False),
        ("sc_low.matmul", False),
    ],
)
def test_is_root_operation(mnemonic, expected):
    assert DeadCodeElimination().is_root_operation(Operation(mnemonic)) is expected