"""Sync pair: one dependency mirrored into one consumer package."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass
class SyncPair:
    """A (consumer, dependency) combination to keep in sync.

    Examples:
        >>> pair = SyncPair("packages/app", "@acme/core", "packages/core")
        >>> pair.name
        '@acme/core'
    """

    consumer: Path
    """Root directory of the consuming package"""

    name: str
    """Name of the dependency as it appears in the consumer's node_modules"""

    source: Path
    """Root directory of the dependency's source package"""

    def __post_init__(self) -> None:
        """Normalize paths given as strings."""
        self.consumer = Path(self.consumer)
        self.name = self.name.strip()
        self.source = Path(self.source)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncPair":
        """Create sync pair from a dictionary.

        Args:
            data: Dictionary with ``consumer``, ``name`` and ``source`` keys

        Returns:
            SyncPair instance

        Raises:
            ValueError: If required fields are missing
        """
        required = ["consumer", "name", "source"]
        missing = [f for f in required if not data.get(f)]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        return cls(
            consumer=data["consumer"],
            name=data["name"],
            source=data["source"],
        )

    def to_dict(self) -> dict[str, str]:
        """Convert sync pair to dictionary."""
        return {
            "consumer": str(self.consumer),
            "name": self.name,
            "source": str(self.source),
        }

    def __str__(self) -> str:
        return f"{self.consumer} -> {self.name} ({self.source})"
