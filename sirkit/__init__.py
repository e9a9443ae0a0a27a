"""Static tensor IR with passes for fusion, simplification, conv lowering, autodiff and arena planning."""

__version__ = "0.1.0"

__all__ = [
    "sir",
    "logger",
    "weight_buffer",
    "pass_manager",
    "dead_code_elimination",
    "differentiability",
    "algebraic_simplifier",
    "arena_mapper",
    "kernel_fuser",
    "gradient_builder",
    "conv_lowering",
    "pipeline",
]