"""Fusion of adjacent operations to avoid arena round-trips."""

from __future__ import annotations

from typing import Optional

from sirkit.logger import Logger
from sirkit.sir import Block, Operation, Value

_OP_CONV2D = "sc_high.conv2d"
_OP_BATCH_NORM = "sc_high.batch_norm"
_OP_RELU = frozenset({"sc_high.relu", "sc_low.relu"})
_OP_MATMUL = frozenset({"sc_low.matmul", "sc_high.gemm"})
_OP_CONSTANT = "sc_high.constant"
_OP_FUSED_EW = "sc_high.fused_ew"
_ELEMENTWISE = frozenset(
    {"sc_high.add", "sc_high.mul", "sc_high.sub", "sc_high.div", _OP_FUSED_EW}
)


def _is_constant(value: Optional[Value]) -> bool:
    return (
        value is not None
        and value.defining_op is not None
        and value.defining_op.mnemonic == _OP_CONSTANT
    )


def _sequence(op: Operation) -> str:
    if op.mnemonic == _OP_FUSED_EW:
        return str(op.get_attribute("op_sequence", "unknown"))
    return op.mnemonic


class KernelFuser:
    """Folds conv+batch-norm, fuses matmul+relu and merges elementwise chains."""

    name = "kernel_fuser"

    def __init__(self) -> None:
        self.fused_conv_bn = 0
        self.fused_matmul_relu = 0
        self.fused_elementwise = 0

    def run(self, block: Block) -> bool:
        """Apply every fusion; return True if the block changed."""
        changed = self._fold_conv_batch_norm(block)
        changed |= self._fuse_matmul_relu(block)
        changed |= self._fuse_elementwise_chains(block)
        Logger.info(
            f"KernelFuser: {self.fused_conv_bn} conv-bn folded, "
            f"{self.fused_matmul_relu} matmul-relu fused, "
            f"{self.fused_elementwise} ew-chains built."
        )
        return changed

    def _fold_conv_batch_norm(self, block: Block) -> bool:
        folded = [bn for bn in block if bn.mnemonic == _OP_BATCH_NORM and self._try_fold(bn)]
        for bn in folded:
            block.remove_op(bn)
        return bool(folded)

    def _try_fold(self, bn: Operation) -> bool:
        if len(bn.operands) < 5 or not bn.results:
            return False
        bn_input = bn.operand(0)
        conv = bn_input.defining_op
        if conv is None or conv.mnemonic != _OP_CONV2D:
            return False
        if not bn_input.has_one_use():
            Logger.debug("Conv-BN folding aborted: Convolution output has multiple consumers.")
            return False
        scale, bias, mean, var = bn.operands[1:5]
        if not all(_is_constant(v) for v in (scale, bias, mean, var)):
            return False

        conv.set_attribute("fused_bn", 1)
        conv.set_attribute("bn_epsilon", float(bn.get_attribute("epsilon", 1e-5)))
        conv.set_attribute("bn_scale_id", scale.id)
        conv.set_attribute("bn_bias_id", bias.id)
        conv.set_attribute("bn_mean_id", mean.id)
        conv.set_attribute("bn_var_id", var.id)

        bn.result(0).replace_all_uses_with(conv.result(0))
        self.fused_conv_bn += 1
        return True

    def _fuse_matmul_relu(self, block: Block) -> bool:
        fused = [op for op in block if op.mnemonic in _OP_RELU and self._try_fuse_relu(op)]
        for op in fused:
            block.remove_op(op)
        return bool(fused)

    def _try_fuse_relu(self, relu_op: Operation) -> bool:
        if not relu_op.operands or not relu_op.results:
            return False
        relu_input = relu_op.operand(0)
        producer = relu_input.defining_op
        if producer is None or producer.mnemonic not in _OP_MATMUL:
            return False
        if not relu_input.has_one_use() or producer.has_attribute("fused_relu"):
            return False
        producer.set_attribute("fused_relu", 1)
        relu_op.result(0).replace_all_uses_with(relu_input)
        self.fused_matmul_relu += 1
        return True

    def _fuse_elementwise_chains(self, block: Block) -> bool:
        graph_changed = False
        while True:
            dead: set = set()
            ew_ops = [op for op in block if op.mnemonic in _ELEMENTWISE]
            pass_changed = False
            for consumer in ew_ops:
                if consumer not in dead and self._try_fuse_pair(block, consumer, dead):
                    pass_changed = True
            for op in ew_ops:
                if op in dead:
                    block.remove_op(op)
            if not pass_changed:
                return graph_changed
            graph_changed = True

    def _try_fuse_pair(self, block: Block, consumer: Operation, dead: set) -> bool:
        if not consumer.results:
            return False
        for value in consumer.operands:
            producer = value.defining_op
            if producer is None or producer in dead:
                continue
            if producer.mnemonic not in _ELEMENTWISE or not value.has_one_use():
                continue

            fused = block.insert_op_before(_OP_FUSED_EW, consumer)
            fused.set_attribute("op_sequence", f"{_sequence(producer)}+{_sequence(consumer)}")
            for operand in producer.operands:
                fused.add_operand(operand)
            for operand in consumer.operands:
                if operand is not value:
                    fused.add_operand(operand)

            old = consumer.result(0)
            fused.add_result("", old.dtype, old.shape)
            old.replace_all_uses_with(fused.result(0))

            dead.add(consumer)
            dead.add(producer)
            self.fused_elementwise += 1
            return True
        return False