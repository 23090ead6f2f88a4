"""Build driver for a Cranelift-based rustc codegen backend, with a profile filter and compiler wrappers."""

__version__ = "0.1.0"

__all__ = ["__version__"]