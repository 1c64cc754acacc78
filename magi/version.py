"""Version information for the node."""

from __future__ import annotations

from dataclasses import dataclass

PACKAGE_NAME = "magi"
PACKAGE_VERSION = "0.1.0"


@dataclass(frozen=True)
class Version:
    """The package name, version and build flavour."""

    name: str
    version: str
    meta: str

    @classmethod
    def build(cls) -> Version:
        """The version of this build; ``dev`` unless running with optimisations."""
        meta = "dev" if __debug__ else "release"
        return cls(name=PACKAGE_NAME, version=PACKAGE_VERSION, meta=meta)

    def __str__(self) -> str:
        return f"{self.name}{self.version}-{self.meta}"