"""Data model shared by the loaders and the project store."""

from dataclasses import dataclass, field
from typing import List, Set


@dataclass
class Entry:
    """One resolved compilation unit: an absolute filename and its cleaned args."""

    filename: str
    args: List[str] = field(default_factory=list)
    # Only set on entries synthesized by inference; those never enter the store.
    is_inferred: bool = False

    def copy(self) -> "Entry":
        return Entry(filename=self.filename, args=list(self.args), is_inferred=self.is_inferred)

    def to_dict(self) -> dict:
        return {"filename": self.filename, "args": list(self.args), "is_inferred": self.is_inferred}


@dataclass
class LoadResult:
    """Entries plus the include directories discovered while cleaning them."""

    entries: List[Entry] = field(default_factory=list)
    quote_includes: Set[str] = field(default_factory=set)
    angle_includes: Set[str] = field(default_factory=set)
