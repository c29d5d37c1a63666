"""Mirror modes for sync tasks."""

from enum import Enum


class MirrorMode(str, Enum):
    """How a package's source tree is materialized in the consumer."""

    COPY = "copy"
    """Recursively copy every file of the source package"""

    LINK = "link"
    """Link each top-level entry of the source package"""

    @classmethod
    def from_string(cls, value: str) -> "MirrorMode":
        """Parse a mirror mode, case-insensitively.

        Args:
            value: Mode name ("copy" or "link")

        Returns:
            MirrorMode

        Raises:
            ValueError: If the name is unknown
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Invalid mirror mode '{value}'. Valid modes: {valid}")

    @property
    def watches_dependency_tree(self) -> bool:
        """Whether the source's node_modules gets its own watch subscription."""
        return self == MirrorMode.COPY

    @property
    def watches_root_subtrees(self) -> bool:
        """Whether each top-level directory of the source gets a recursive watch.

        Links already reflect nested changes; copies need every file event.
        The root itself is always watched without recursion.
        """
        return self == MirrorMode.COPY
