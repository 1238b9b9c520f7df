"""Verilog testbench build, run and report orchestration."""

__version__ = "0.1.0"

__all__ = ["__version__"]
