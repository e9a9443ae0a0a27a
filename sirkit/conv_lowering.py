"""Lowering of convolutions and their gradients to im2col/col2im and matmul."""

from __future__ import annotations

from typing import Optional, Sequence

from sirkit.logger import Logger
from sirkit.sir import Block, DataType, Operation, Shape, Value

_OP_CONV2D = "sc_high.conv2d"
_OP_CONV2D_GRAD_INPUT = "sc_high.conv2d_grad_input"
_OP_CONV2D_GRAD_FILTER = "sc_high.conv2d_grad_filter"


class LoweringError(Exception):
    """A convolution could not be lowered."""


def _ints(
    op: Operation, key: str, length: int, default: Optional[Sequence[int]] = None
) -> tuple:
    value = op.get_attribute(key)
    if value is None:
        if default is None:
            raise LoweringError(f"{op.mnemonic}: missing '{key}' attribute.")
        value = default
    if not isinstance(value, (list, tuple)) or len(value) != length:
        raise LoweringError(f"{op.mnemonic}: '{key}' must hold {length} integers, got {value!r}.")
    return tuple(int(v) for v in value)


def _dims(op: Operation, value: Value, what: str, rank: int = 4) -> tuple:
    dims = value.shape.dims
    if len(dims) != rank or any(d == Shape.DYNAMIC for d in dims):
        raise LoweringError(
            f"{op.mnemonic}: {what} must have a static rank-{rank} shape, got {list(dims)}."
        )
    return dims


def _output_extent(size: int, kernel: int, stride: int, pad_before: int,
                   pad_after: int, dilation: int) -> int:
    effective = dilation * (kernel - 1) + 1
    span = size + pad_before + pad_after - effective
    if stride <= 0 or span < 0:
        raise LoweringError(
            f"conv2d: kernel extent {effective} does not fit input extent {size} "
            f"with padding ({pad_before}, {pad_after}) and stride {stride}."
        )
    return span // stride + 1


def _emit_before(
    block: Block,
    anchor: Operation,
    mnemonic: str,
    operands: Sequence[Value],
    dtype: DataType,
    dims: Sequence[int],
    **attributes,
) -> Value:
    op = block.insert_op_before(mnemonic, anchor)
    for operand in operands:
        op.add_operand(operand)
    for key, value in attributes.items():
        op.set_attribute(key, value)
    return op.add_result("", dtype, Shape(tuple(dims)))


def _replace(block: Block, op: Operation, replacement: Value) -> None:
    if op.results:
        op.result(0).replace_all_uses_with(replacement)
    block.remove_op(op)


class ConvLowering:
    """Lowers conv2d and its input/filter gradients to linear-algebra primitives."""

    name = "sc_high.conv_to_low_matmul"

    def run(self, block: Block) -> bool:
        """Lower every convolution in ``block``; return True if any were lowered.

        Raises LoweringError when an operation lacks required operands,
        attributes or static shapes.
        """
        to_lower = [op for op in block if op.mnemonic in self._LOWERINGS]
        changed = False
        for op in to_lower:
            changed |= self._LOWERINGS[op.mnemonic](self, block, op)
        return changed

    def _lower_forward(self, block: Block, op: Operation) -> bool:
        if len(op.operands) < 2:
            raise LoweringError("Conv2D requires at least 2 operands (input, filter).")
        input_, filter_ = op.operand(0), op.operand(1)
        bias = op.operand(2) if len(op.operands) > 2 else None

        n, c, h, w = _dims(op, input_, "input")
        f, filter_c, kh, kw = _dims(op, filter_, "filter")
        group = int(op.get_attribute("group", 1))
        if group != 1:
            raise LoweringError(f"Conv2D: grouped convolution (group={group}) is not supported.")
        if filter_c != c:
            raise LoweringError(
                f"Conv2D: filter expects {filter_c} input channels but input has {c}."
            )

        strides = _ints(op, "strides", 2, (1, 1))
        pads = _ints(op, "pads", 4, (0, 0, 0, 0))
        dilations = _ints(op, "dilations", 2, (1, 1))
        out_h = _output_extent(h, kh, strides[0], pads[0], pads[2], dilations[0])
        out_w = _output_extent(w, kw, strides[1], pads[1], pads[3], dilations[1])

        dtype = input_.dtype
        col_rows = c * kh * kw
        col_cols = out_h * out_w

        # 1. Unfold input patches: [N, C, H, W] -> [N, C*KH*KW, out_H*out_W]
        col = _emit_before(
            block, op, "sc_low.im2col", [input_], dtype, (n, col_rows, col_cols),
            kernel_shape=(kh, kw), strides=strides, pads=pads, dilations=dilations,
        )
        # 2. Flatten filter as a view: [F, C, KH, KW] -> [F, C*KH*KW]
        flat_filter = _emit_before(
            block, op, "sc_low.view_cast", [filter_], filter_.dtype, (f, col_rows),
            target_shape=(f, col_rows),
        )
        # 3. Batched matmul: [F, C*KH*KW] x [N, C*KH*KW, out_H*out_W] -> [N, F, out_H*out_W]
        matmul_operands = [flat_filter, col] + ([bias] if bias is not None else [])
        product = _emit_before(
            block, op, "sc_low.matmul", matmul_operands, dtype, (n, f, col_cols)
        )
        matmul = product.defining_op
        for key, value in op.attributes.items():
            if key == "fused_bn" or key.startswith("bn_"):
                matmul.set_attribute(key, value)
        # 4. Restore spatial layout: [N, F, out_H*out_W] -> [N, F, out_H, out_W]
        output = _emit_before(
            block, op, "sc_low.view_cast", [product], dtype, (n, f, out_h, out_w),
            target_shape=(n, f, out_h, out_w),
        )

        _replace(block, op, output)
        Logger.debug("ConvLowering: Lowered conv2d -> im2col + matmul")
        return True

    def _lower_backward_input(self, block: Block, op: Operation) -> bool:
        if len(op.operands) < 2:
            message = "Conv2D Grad Input requires 2 operands (filter, grad_output)."
            Logger.error(message)
            raise LoweringError(message)

        filter_ = op.operand(0)
        grad_out = op.operand(1)
        input_shape = _ints(op, "input_shape", 4)
        strides = _ints(op, "strides", 2)
        pads = _ints(op, "pads", 4)

        n, c, _h, _w = input_shape
        f, _filter_c, kh, kw = _dims(op, filter_, "filter")
        _, _, out_h, out_w = _dims(op, grad_out, "grad_output")

        col_rows = c * kh * kw
        col_cols = out_h * out_w
        dtype = grad_out.dtype

        flat_filter = _emit_before(
            block, op, "sc_low.view_cast", [filter_], filter_.dtype, (f, col_rows),
            target_shape=(f, col_rows),
        )
        filter_t = _emit_before(
            block, op, "sc_low.transpose", [flat_filter], filter_.dtype, (col_rows, f)
        )
        flat_grad = _emit_before(
            block, op, "sc_low.view_cast", [grad_out], dtype, (n, f, col_cols),
            target_shape=(n, f, col_cols),
        )
        col_grad = _emit_before(
            block, op, "sc_low.matmul", [filter_t, flat_grad], dtype, (n, col_rows, col_cols)
        )
        grad_input = _emit_before(
            block, op, "sc_low.col2im", [col_grad], dtype, input_shape,
            target_shape=input_shape, kernel_shape=(kh, kw), strides=strides, pads=pads,
        )

        _replace(block, op, grad_input)
        Logger.debug("ConvLowering: Lowered grad_input -> transpose + matmul + col2im")
        return True

    def _lower_backward_filter(self, block: Block, op: Operation) -> bool:
        if len(op.operands) < 2:
            message = "Conv2D Grad Filter requires 2 operands (input, grad_output)."
            Logger.error(message)
            raise LoweringError(message)

        input_ = op.operand(0)
        grad_out = op.operand(1)
        n, c, _h, _w = _dims(op, input_, "input")
        _, f, out_h, out_w = _dims(op, grad_out, "grad_output")

        if op.has_attribute("kernel_shape"):
            kh, kw = _ints(op, "kernel_shape", 2)
        elif op.results and op.result(0).shape.rank() == 4:
            _, _, kh, kw = _dims(op, op.result(0), "result")
        else:
            raise LoweringError(f"{op.mnemonic}: missing 'kernel_shape' attribute.")
        strides = _ints(op, "strides", 2, (1, 1))
        pads = _ints(op, "pads", 4, (0, 0, 0, 0))

        col_rows = c * kh * kw
        col_cols = out_h * out_w
        dtype = grad_out.dtype

        col = _emit_before(
            block, op, "sc_low.im2col", [input_], input_.dtype, (n, col_rows, col_cols),
            kernel_shape=(kh, kw), strides=strides, pads=pads,
        )
        col_t = _emit_before(
            block, op, "sc_low.transpose", [col], input_.dtype, (n, col_cols, col_rows)
        )
        flat_grad = _emit_before(
            block, op, "sc_low.view_cast", [grad_out], dtype, (n, f, col_cols),
            target_shape=(n, f, col_cols),
        )
        batch_grad = _emit_before(
            block, op, "sc_low.matmul", [flat_grad, col_t], dtype, (n, f, col_rows)
        )
        flat_grad_filter = _emit_before(
            block, op, "sc_low.reduce_sum", [batch_grad], dtype, (f, col_rows), axis=(0,)
        )
        grad_filter = _emit_before(
            block, op, "sc_low.view_cast", [flat_grad_filter], dtype, (f, c, kh, kw),
            target_shape=(f, c, kh, kw),
        )

        _replace(block, op, grad_filter)
        Logger.debug("ConvLowering: Lowered grad_filter -> im2col + matmul + reduce_sum")
        return True

    _LOWERINGS = {
        _OP_CONV2D: _lower_forward,
        _OP_CONV2D_GRAD_INPUT: _lower_backward_input,
        _OP_CONV2D_GRAD_FILTER: _lower_backward_filter,
    }