"""External compiler and simulator invocation."""

from .runner import FakeToolchain, IverilogRunner, ToolchainError, ToolNotFoundError, ToolResult

__all__ = [
    "FakeToolchain",
    "IverilogRunner",
    "ToolchainError",
    "ToolNotFoundError",
    "ToolResult",
]
