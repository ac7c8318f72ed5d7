"""
Indentation-aware logging for call graph traversal.

Nested calls are easier to follow in the log when every message is
indented by its depth in the call tree.
"""
import logging
from typing import Any, MutableMapping, Optional, Tuple


class CallLogger(logging.LoggerAdapter):
    """Logger adapter prefixing messages with two spaces per nesting level."""

    YELLOW = "\x1b[33m"
    GREEN = "\x1b[32m"
    DEFAULT = "\x1b[0m"

    def __init__(self, logger: Optional[logging.Logger] = None, color: bool = False):
        super().__init__(logger or logging.getLogger("pysequence.traversal"), {})
        self.level_of_indentation = 0
        self.color = color

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{'  ' * self.level_of_indentation}{msg}", kwargs

    def indent(self) -> None:
        self.level_of_indentation += 1

    def outdent(self) -> None:
        if self.level_of_indentation > 0:
            self.level_of_indentation -= 1

    def reset(self) -> None:
        self.level_of_indentation = 0

    def hi_method(self, method_name: str) -> str:
        if not self.color:
            return f"{method_name}()"
        return f"{self.YELLOW}{method_name}(){self.DEFAULT}"

    def hi_object(self, object_name: str) -> str:
        if not self.color:
            return object_name
        return f"{self.GREEN}{object_name}{self.DEFAULT}"
