# sirkit

`sirkit` is a small static tensor intermediate representation (SIR) in SSA form,
with the middle-end passes that transform and analyse it. It has no
dependencies outside the standard library.

## What is in the package

- `sirkit.sir` – the IR itself: `DataType`, `Shape` (with `Shape.DYNAMIC` for
  unknown dimensions), `Value`, `Operation`, `Block` and `Region`, plus the
  builders `conv2d`, `batch_norm`, `gemm`, `relu` and `im2col`, which return
  detached operations ready for `Block.append_op`. `Block.validate()` checks
  that every operand is defined before it is used; `str(block)` prints the IR.
- `sirkit.dead_code_elimination.DeadCodeElimination` – mark-and-sweep pruning.
  Operations are kept only if a root depends on them; roots are
  `sc_high.return`, `sc_low.return`, `sc_high.yield` and every `sc_mem.*` or
  `sc_ctrl.*` operation.
- `sirkit.algebraic_simplifier.AlgebraicSimplifier` – rewrites `Add`, `Mul` and
  `Pow` operations whose operand comes from a `Constant` operation (scalar in
  its `value` attribute): `x + 0 -> x`, `x * 1 -> x`, `x * 0 -> 0`,
  `x ** 1 -> x` and `x ** 2 -> x * x`, repeated until nothing changes.
- `sirkit.kernel_fuser.KernelFuser` – folds `sc_high.batch_norm` with constant
  parameters into the preceding `sc_high.conv2d` (as `fused_bn`/`bn_*`
  attributes), marks `sc_low.matmul`/`sc_high.gemm` followed by a single-use
  relu with `fused_relu`, and merges chains of `sc_high.add/mul/sub/div` into
  `sc_high.fused_ew` operations carrying an `op_sequence` attribute. The
  counters `fused_conv_bn`, `fused_matmul_relu` and `fused_elementwise` record
  what it did.
- `sirkit.conv_lowering.ConvLowering` – lowers `sc_high.conv2d`,
  `sc_high.conv2d_grad_input` and `sc_high.conv2d_grad_filter` to
  `sc_low.im2col`, `sc_low.col2im`, `sc_low.view_cast`, `sc_low.transpose`,
  `sc_low.matmul` and `sc_low.reduce_sum`. Static rank-4 shapes are required;
  grouped convolution is rejected. Failures raise `LoweringError`.
- `sirkit.gradient_builder.GradientBuilder` – reverse-mode autodiff over
  operations named by their first result. Rules exist for `Add`, `MatMul` and
  `Relu`; `Constant` and `Variable` stop propagation; fan-out is summed through
  `AdjointEnvironment`. Unknown operators or value names raise `GradientError`.
- `sirkit.differentiability.DifferentiabilityChecker` – reports discrete
  operations (`ArgMax`, `Floor`, `Equal`, …) and operations without a gradient
  rule (`Einsum`, `DeformConv2D`, `LpNormalization`).
- `sirkit.arena_mapper.ArenaMapper` – liveness analysis plus first-fit
  linear-scan allocation of operation results into one arena. Every element is
  counted as 4 bytes and sizes are rounded up to `alignment` (a power of two,
  default 32). Dynamic shapes raise `MapperError`.
- `sirkit.pass_manager.PassManager` – runs passes (any object with `run(block)`
  returning whether it changed the block) in order, logs their timing,
  optionally prints the IR after each changing pass and, with
  `PassContext.verify_each` (the default), raises `VerificationError` if the
  block no longer validates.
- `sirkit.pipeline.build_middle_end_pipeline` – builds a `PassManager` from a
  `PipelineConfig`.
- `sirkit.weight_buffer.WeightBuffer` – copies of named weight blobs from any
  buffer-protocol object, returned as read-only typed `memoryview`s; an
  existing name is never overwritten.
- `sirkit.logger.Logger` – levelled, coloured console logger (debug and info to
  stdout, warn and error to stderr; default level `LogLevel.INFO`).

## Installation

```
pip install .
```

## Example

```python
from sirkit.sir import Block, DataType, Shape, relu
from sirkit.dead_code_elimination import DeadCodeElimination
from sirkit.arena_mapper import ArenaMapper

block = Block()
x = block.add_argument(DataType.F32, Shape([1, 16]))
act = block.append_op(relu(x))

ret = block.append_op("sc_high.return")
ret.add_operand(act.result(0))

DeadCodeElimination().run(block)
layout = ArenaMapper(alignment=32).run(block)
print(layout.total_arena_size_bytes)
```

Running the standard pipeline:

```python
from sirkit.pipeline import OptLevel, PipelineConfig, build_middle_end_pipeline

manager = build_middle_end_pipeline(PipelineConfig(level=OptLevel.O2))
changed = manager.run(block)
```

The pipeline is, in order: a continuity check (when both `enable_autodiff` and
`strict_continuity_check` are set; it raises `PassError` on non-differentiable
operations), `AlgebraicSimplifier` (O3), `KernelFuser` (O2 and up),
`DeadCodeElimination` (O1 and up), `ConvLowering` (always), then `KernelFuser`
and `DeadCodeElimination` again at the same levels.

Building gradients:

```python
from sirkit.sir import Block, DataType, Shape
from sirkit.gradient_builder import GradientBuilder

block = Block()
x = block.add_argument(DataType.F32, Shape([4, 8]))
w = block.add_argument(DataType.F32, Shape([8, 2]))
mm = block.append_op("MatMul")
mm.add_operand(x)
mm.add_operand(w)
mm.add_result("y", DataType.F32, Shape([4, 2]))
act = block.append_op("Relu")
act.add_operand(mm.result(0))
act.add_result("loss", DataType.F32, Shape([4, 2]))

env = GradientBuilder().build_gradients(block, "loss")
print(env.gradient(x.id))  # "y_grad_A"
```

## What the package does not do

`sirkit` stops at the transformed IR and its memory layout. It does not parse
model files, generate machine or C code, serialise compiled models, or execute
them; there is no runtime and no command-line tool.

## Tests

```
pip install .[test]
pytest
```