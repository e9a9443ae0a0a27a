from sirkit.algebraic_simplifier import AlgebraicSimplifier
from sirkit.sir import Block, DataType, Shape


def constant(block, value):
    op = block.append_op("Constant")
    op.set_attribute("value", value)
    op.add_result("", DataType.F32, Shape())
    return op.result()


def binary(block, mnemonic, lhs, rhs):
    op = block.append_op(mnemonic)
    op.add_operand(lhs)
    op.add_operand(rhs)
    op.add_result("", DataType.F32, Shape((4,)))
    return op


def consumer(block, value):
    op = block.append_op("Relu")
    op.add_operand(value)
    op.add_result("", DataType.F32, Shape((4,)))
    return op


def setup():
    block = Block()
    x = block.add_argument(DataType.F32, Shape((4,)))
    return block, x


def test_add_zero_on_right():
    block, x = setup()
    zero = constant(block, 0.0)
    add = binary(block, "Add", x, zero)
    user = consumer(block, add.result())
    assert AlgebraicSimplifier().run(block) is True
    assert user.operand(0) is x
    assert add not in block


def test_add_zero_on_left():
    block, x = setup()
    zero = constant(block, 0.0)
    add = binary(block, "Add", zero, x)
    user = consumer(block, add.result())
    assert AlgebraicSimplifier().run(block) is True
    assert user.operand(0) is x


def test_mul_one_is_removed():
    block, x = setup()
    one = constant(block, 1.0)
    mul = binary(block, "Mul", x, one)
    user = consumer(block, mul.result())
    assert AlgebraicSimplifier().run(block) is True
    assert user.operand(0) is x
    assert mul not in block


def test_mul_zero_becomes_zero():
    block, x = setup()
    zero = constant(block, 0.0)
    mul = binary(block, "Mul", x, zero)
    user = consumer(block, mul.result())
    assert AlgebraicSimplifier().run(block) is True
    assert user.operand(0) is zero


def test_pow_two_becomes_mul_with_same_name():
    block, x = setup()
    two = constant(block, 2.0)
    pow_op = binary(block, "Pow", x, two)
    name = pow_op.name
    user = consumer(block, pow_op.result())
    assert AlgebraicSimplifier().run(block) is True
    assert pow_op not in block
    mul = user.operand(0).defining_op
    assert mul.mnemonic == "Mul"
    assert mul.operands == (x, x)
    assert mul.name == name
    assert block.validate() is True


def test_pow_one_is_removed():
    block, x = setup()
    one = constant(block, 1.0)
    pow_op = binary(block, "Pow", x, one)
    user = consumer(block, pow_op.result())
    assert AlgebraicSimplifier().run(block) is True
    assert user.operand(0) is x


def test_cascade_reaches_fixed_point():
    block, x = setup()
    one = constant(block, 1.0)
    zero = constant(block, 0.0)
    mul = binary(block, "Mul", x, one)
    add = binary(block, "Add", mul.result(), zero)
    user = consumer(block, add.result())
    assert AlgebraicSimplifier().run(block) is True
    assert user.operand(0) is x
    assert [op.mnemonic for op in block] == ["Constant", "Constant", "Relu"]


def test_no_pattern_means_no_change():
    block, x = setup()
    three = constant(block, 3.0)
    add = binary(block, "Add", x, three)
    assert AlgebraicSimplifier().run(block) is False
    assert add in block


def test_non_constant_producer_is_not_matched():
    block, x = setup()
    fake = block.append_op("Other")
    fake.set_attribute("value", 0.0)
    fake.add_result("", DataType.F32, Shape())
    add = binary(block, "Add", x, fake.result())
    assert AlgebraicSimplifier().run(block) is False
    assert add in block


def test_single_element_list_constant_matches():
    block, x = setup()
    zero = constant(block, [0.0])
    add = binary(block, "Add", x, zero)
    user = consumer(block, add.result())
    assert AlgebraicSimplifier().run(block) is True
    assert user.operand(0) is x


def test_wrong_arity_is_ignored():
    block, x = setup()
    op = block.append_op("Add")
    op.add_operand(x)
    op.add_result("", DataType.F32, Shape((4,)))
    assert AlgebraicSimplifier().run(block) is False
    assert op in block