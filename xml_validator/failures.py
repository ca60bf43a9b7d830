"""Normalised validation results."""

from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from lxml.etree import _Element as Element  # noqa


@dataclass(frozen=True, eq=False)
class Failure:
    """
    One violation found while validating a document.

    Two failures are equal when their messages and lines are equal and they refer to the
    same node object, or both refer to no node.
    """

    message: str
    line: int = 0  # 1-based, 0 if the engine does not know the line.
    node: Element | None = None

    def __post_init__(self) -> None:
        """Normalise the line number."""
        line = 0 if self.line is None else int(self.line)
        if line < 0:
            raise ValueError(f"Line number must not be negative: {line}")
        object.__setattr__(self, "line", line)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Failure):
            return NotImplemented
        return self.message == other.message and self.line == other.line and self.node is other.node

    def __hash__(self) -> int:
        return hash((self.message, self.line, None if self.node is None else id(self.node)))

    def __repr__(self) -> str:
        node = None if self.node is None else self.node.tag
        return f"Failure(message={self.message!r}, line={self.line}, node={node!r})"

    @property
    def node_path(self) -> str | None:
        """
        Return the path of the failing node within its document.

        :return: The node path or None if there is no node.
        """
        if self.node is None:
            return None
        return str(self.node.getroottree().getpath(self.node))

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the failure to a serialisable dictionary.

        :return: Dictionary with the message, line and node path.
        """
        return {"message": self.message, "line": self.line, "node": self.node_path}


class ValidationFailed(Exception):
    """Exception containing every failure found in one validation call."""

    def __init__(self, failures: Iterable[Failure]) -> None:
        """
        Exception containing every failure found in one validation call.

        :param failures: The failures in the order they were found. Must not be empty.
        """
        self._failures: tuple[Failure, ...] = tuple(failures)
        if not self._failures:
            raise ValueError("Validation can't fail without failures.")
        super().__init__(f"XML validation failed with {len(self._failures)} error(s)")

    @property
    def failures(self) -> tuple[Failure, ...]:
        """The failures in the order they were found."""
        return self._failures

    def get_failures(self) -> tuple[Failure, ...]:
        """
        Return the failures in the order they were found.

        :return: The failures.
        """
        return self._failures

    def __len__(self) -> int:
        return len(self._failures)

    def __iter__(self) -> Iterator[Failure]:
        return iter(self._failures)

    def __str__(self) -> str:
        messages = [f"Line {f.line}: {f.message}" for f in self._failures]
        return f"{self.args[0]}:\n" + "\n".join(messages)
