"""Static intermediate representation: types, shapes, values, operations and blocks."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Iterable, Iterator, Optional, Sequence, Union

AttributeValue = Union[int, float, str, Sequence[int], Sequence[float]]

_id_counter = itertools.count()


def _next_id() -> str:
    return f"%{next(_id_counter)}"


class DataType(Enum):
    """Element types a tensor value may carry."""

    F16 = "f16"
    BF16 = "bf16"
    F32 = "f32"
    F64 = "f64"
    I8 = "i8"
    I32 = "i32"
    I64 = "i64"
    BOOL = "bool"


_BYTE_WIDTHS = {
    DataType.BOOL: 1,
    DataType.I8: 1,
    DataType.F16: 2,
    DataType.BF16: 2,
    DataType.F32: 4,
    DataType.I32: 4,
    DataType.F64: 8,
    DataType.I64: 8,
}


def dtype_byte_width(dtype: DataType) -> int:
    """Number of bytes one element of ``dtype`` occupies (0 if unknown)."""
    return _BYTE_WIDTHS.get(dtype, 0)


def dtype_name(dtype: DataType) -> str:
    """Short textual name of ``dtype`` ("unknown" if not a DataType)."""
    return dtype.value if isinstance(dtype, DataType) else "unknown"


@dataclass(frozen=True)
class Shape:
    """Tensor shape; a dimension equal to ``DYNAMIC`` is unknown until run time."""

    DYNAMIC: ClassVar[int] = -1

    dims: tuple = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "dims", tuple(int(d) for d in self.dims))

    @staticmethod
    def scalar() -> "Shape":
        return Shape()

    def rank(self) -> int:
        return len(self.dims)

    def is_scalar(self) -> bool:
        return not self.dims

    def is_fully_static(self) -> bool:
        return all(d != Shape.DYNAMIC for d in self.dims)

    def volume(self) -> int:
        """Element count, or ``DYNAMIC`` if any dimension is dynamic."""
        volume = 1
        for dim in self.dims:
            if dim == Shape.DYNAMIC:
                return Shape.DYNAMIC
            volume *= dim
        return volume

    def byte_size(self, dtype: DataType) -> int:
        """Byte size for ``dtype`` elements; 0 when the shape is dynamic."""
        volume = self.volume()
        return 0 if volume == Shape.DYNAMIC else volume * dtype_byte_width(dtype)


class Value:
    """An SSA value produced by an operation or passed in as a block argument."""

    def __init__(
        self,
        id: str,
        dtype: DataType,
        shape: Optional[Shape] = None,
        defining_op: Optional["Operation"] = None,
    ) -> None:
        self._id = id
        self._dtype = dtype
        self.shape = shape if shape is not None else Shape()
        self._defining_op = defining_op
        self._users: list[Operation] = []

    @property
    def id(self) -> str:
        return self._id

    @property
    def dtype(self) -> DataType:
        return self._dtype

    @property
    def defining_op(self) -> Optional["Operation"]:
        return self._defining_op

    @property
    def users(self) -> tuple:
        return tuple(self._users)

    def is_block_argument(self) -> bool:
        return self._defining_op is None

    def has_one_use(self) -> bool:
        return len(self._users) == 1

    def has_no_uses(self) -> bool:
        return not self._users

    def add_user(self, op: "Operation") -> None:
        self._users.append(op)

    def remove_user(self, op: "Operation") -> None:
        """Drop one recorded use by ``op``, if any."""
        for index, user in enumerate(self._users):
            if user is op:
                del self._users[index]
                return

    def replace_all_uses_with(self, new_value: "Value") -> None:
        """Rewire every operand slot that refers to this value to ``new_value``."""
        if new_value is None:
            raise TypeError("replace_all_uses_with called with no value")
        if new_value is self:
            raise ValueError("replace_all_uses_with called with the same value")
        for user in dict.fromkeys(self._users):
            for index, operand in enumerate(user.operands):
                if operand is self:
                    user.set_operand(index, new_value)

    def __repr__(self) -> str:
        return f"Value({self._id!r}, {dtype_name(self._dtype)}, {list(self.shape.dims)})"


def _format_scalar(value) -> str:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float):
        return format(value, "g")
    return str(value)


def _format_attribute(value) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format_scalar(v) for v in value) + "]"
    return _format_scalar(value)


class Operation:
    """A single IR operation with operands, results and named attributes."""

    def __init__(self, mnemonic: str, parent_block: Optional["Block"] = None) -> None:
        self._mnemonic = mnemonic
        self.parent_block = parent_block
        self._operands: list[Value] = []
        self._results: list[Value] = []
        self._attributes: dict[str, AttributeValue] = {}

    @property
    def mnemonic(self) -> str:
        return self._mnemonic

    @property
    def name(self) -> str:
        """Identifier of the first result, or an empty string without results."""
        return self._results[0].id if self._results else ""

    @property
    def operands(self) -> tuple:
        return tuple(self._operands)

    @property
    def results(self) -> tuple:
        return tuple(self._results)

    @property
    def attributes(self) -> dict:
        return dict(sorted(self._attributes.items()))

    def is_high_level(self) -> bool:
        return self._mnemonic.startswith("sc_high.")

    def is_low_level(self) -> bool:
        return self._mnemonic.startswith("sc_low.")

    def is_memory_op(self) -> bool:
        return self._mnemonic.startswith("sc_mem.")

    def is_control_flow(self) -> bool:
        return self._mnemonic.startswith("sc_ctrl.")

    def operand(self, index: int) -> Value:
        if not 0 <= index < len(self._operands):
            raise IndexError(f"operand index {index} out of range")
        return self._operands[index]

    def add_operand(self, value: Value) -> None:
        if value is None:
            raise TypeError("add_operand: value is required")
        self._operands.append(value)
        value.add_user(self)

    def set_operand(self, index: int, value: Value) -> None:
        if not 0 <= index < len(self._operands):
            raise IndexError(f"set_operand: index {index} out of range")
        if value is None:
            raise TypeError("set_operand: value is required")
        self._operands[index].remove_user(self)
        self._operands[index] = value
        value.add_user(self)

    def result(self, index: int = 0) -> Value:
        if not 0 <= index < len(self._results):
            raise IndexError(f"result index {index} out of range")
        return self._results[index]

    def add_result(self, id: str, dtype: DataType, shape: Optional[Shape] = None) -> Value:
        """Create a result value; an empty ``id`` gets a fresh unique one."""
        value = Value(id or _next_id(), dtype, shape, self)
        self._results.append(value)
        return value

    def set_attribute(self, key: str, value: AttributeValue) -> None:
        if isinstance(value, (list, tuple)):
            value = tuple(value)
        self._attributes[key] = value

    def get_attribute(self, key: str, default=None):
        return self._attributes.get(key, default)

    def has_attribute(self, key: str) -> bool:
        return key in self._attributes

    def __str__(self) -> str:
        text = ""
        if self._results:
            parts = []
            for value in self._results:
                part = f"{value.id} : {dtype_name(value.dtype)}"
                if value.shape.dims:
                    dims = "x".join(
                        "?" if d == Shape.DYNAMIC else str(d) for d in value.shape.dims
                    )
                    part += f"<{dims}>"
                parts.append(part)
            text = ", ".join(parts) + " = "
        text += f"{self._mnemonic}({', '.join(v.id for v in self._operands)})"
        if self._attributes:
            attrs = ", ".join(
                f"{key} = {_format_attribute(value)}"
                for key, value in sorted(self._attributes.items())
            )
            text += f" {{{attrs}}}"
        return text

    def __repr__(self) -> str:
        return f"Operation({self._mnemonic!r}, name={self.name!r})"


class Block:
    """An ordered list of operations with block arguments."""

    def __init__(self) -> None:
        self._args: list[Value] = []
        self._ops: list[Operation] = []
        self._validated = False

    @property
    def arguments(self) -> tuple:
        return tuple(self._args)

    @property
    def operations(self) -> tuple:
        return tuple(self._ops)

    @property
    def is_validated(self) -> bool:
        return self._validated

    def __len__(self) -> int:
        return len(self._ops)

    def __iter__(self) -> Iterator[Operation]:
        return iter(tuple(self._ops))

    def __reversed__(self) -> Iterator[Operation]:
        return reversed(tuple(self._ops))

    def __contains__(self, op: object) -> bool:
        return any(existing is op for existing in self._ops)

    def add_argument(self, dtype: DataType, shape: Optional[Shape] = None) -> Value:
        value = Value(_next_id(), dtype, shape, None)
        self._args.append(value)
        return value

    def _adopt(self, op: Union[str, Operation]) -> Operation:
        if op is None:
            raise TypeError("an operation or mnemonic is required")
        if isinstance(op, str):
            op = Operation(op)
        op.parent_block = self
        return op

    def _index_of(self, op: Operation) -> int:
        for index, existing in enumerate(self._ops):
            if existing is op:
                return index
        raise ValueError(f"operation {op!r} is not in this block")

    def append_op(self, op: Union[str, Operation]) -> Operation:
        """Append an operation (or a new one with the given mnemonic)."""
        op = self._adopt(op)
        self._ops.append(op)
        return op

    def insert_op_before(self, op: Union[str, Operation], anchor: Operation) -> Operation:
        """Insert an operation immediately before ``anchor``."""
        index = self._index_of(anchor)
        op = self._adopt(op)
        self._ops.insert(index, op)
        return op

    def remove_op(self, op: Operation) -> Operation:
        """Detach ``op`` from the block and from its operands' use lists."""
        index = self._index_of(op)
        for operand in op.operands:
            operand.remove_user(op)
        del self._ops[index]
        op.parent_block = None
        return op

    def get_operation(self, name: str) -> Optional[Operation]:
        """The operation whose first result is named ``name``, if any."""
        if not name:
            return None
        return next((op for op in self._ops if op.name == name), None)

    def validate(self) -> bool:
        """Check that every operand is defined before it is used."""
        defined = {id(arg) for arg in self._args}
        for op in self._ops:
            if any(id(operand) not in defined for operand in op.operands):
                return False
            defined.update(id(result) for result in op.results)
        self._validated = True
        return True

    def __str__(self) -> str:
        lines = []
        if self._args:
            args = ", ".join(f"{a.id}: {dtype_name(a.dtype)}" for a in self._args)
            lines.append(f"({args}):\n")
        lines.extend(f"  {op}\n" for op in self._ops)
        return "".join(lines)


class Region:
    """An ordered collection of blocks; the first is the entry block."""

    def __init__(self) -> None:
        self._blocks: list[Block] = []

    @property
    def blocks(self) -> tuple:
        return tuple(self._blocks)

    def add_block(self) -> Block:
        block = Block()
        self._blocks.append(block)
        return block

    def entry_block(self) -> Block:
        if not self._blocks:
            raise IndexError("region has no blocks")
        return self._blocks[0]


def _require(value, what: str) -> None:
    if value is None:
        raise TypeError(f"{what} is required")


def conv2d(
    input: Value,
    filter: Value,
    bias: Optional[Value],
    strides: Iterable[int],
    pads: Iterable[int] = (0, 0, 0, 0),
    dilations: Iterable[int] = (1, 1),
    group: int = 1,
) -> Operation:
    """Build a detached ``sc_high.conv2d`` operation."""
    _require(input, "conv2d: input")
    _require(filter, "conv2d: filter")
    op = Operation("sc_high.conv2d")
    op.add_operand(input)
    op.add_operand(filter)
    if bias is not None:
        op.add_operand(bias)
    op.set_attribute("strides", tuple(strides))
    op.set_attribute("pads", tuple(pads))
    op.set_attribute("dilations", tuple(dilations))
    op.set_attribute("group", int(group))
    op.add_result("", input.dtype, Shape())
    return op


def batch_norm(
    input: Value,
    scale: Value,
    bias: Value,
    running_mean: Value,
    running_var: Value,
    epsilon: float = 1e-5,
) -> Operation:
    """Build a detached ``sc_high.batch_norm`` operation."""
    for value, what in (
        (input, "input"),
        (scale, "scale"),
        (bias, "bias"),
        (running_mean, "running_mean"),
        (running_var, "running_var"),
    ):
        _require(value, f"batch_norm: {what}")
    op = Operation("sc_high.batch_norm")
    for value in (input, scale, bias, running_mean, running_var):
        op.add_operand(value)
    op.set_attribute("epsilon", float(epsilon))
    op.add_result("", input.dtype, input.shape)
    return op


def gemm(
    a: Value,
    b: Value,
    bias: Optional[Value] = None,
    trans_a: bool = False,
    trans_b: bool = False,
) -> Operation:
    """Build a detached ``sc_high.gemm`` operation."""
    _require(a, "gemm: A")
    _require(b, "gemm: B")
    op = Operation("sc_high.gemm")
    op.add_operand(a)
    op.add_operand(b)
    if bias is not None:
        op.add_operand(bias)
    op.set_attribute("trans_a", int(bool(trans_a)))
    op.set_attribute("trans_b", int(bool(trans_b)))
    op.add_result("", a.dtype, Shape())
    return op


def relu(input: Value) -> Operation:
    """Build a detached ``sc_high.relu`` operation."""
    _require(input, "relu: input")
    op = Operation("sc_high.relu")
    op.add_operand(input)
    op.add_result("", input.dtype, input.shape)
    return op


def im2col(
    input: Value,
    kernel_shape: Iterable[int],
    strides: Iterable[int],
    pads: Iterable[int],
) -> Operation:
    """Build a detached ``sc_low.im2col`` operation."""
    _require(input, "im2col: input")
    op = Operation("sc_low.im2col")
    op.add_operand(input)
    op.set_attribute("kernel_shape", tuple(kernel_shape))
    op.set_attribute("strides", tuple(strides))
    op.set_attribute("pads", tuple(pads))
    op.add_result("", input.dtype, Shape())
    return op