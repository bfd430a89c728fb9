"""Immutable descriptors for source schema metadata."""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column as read from information_schema.columns."""
    name: str
    data_type: str
    is_nullable: bool
    default: Optional[str]
    ordinal_position: int
    is_identity: bool = False


@dataclass(frozen=True)
class ForeignKeyDescriptor:
    """A single-column foreign key. Rules are kept as read from the source."""
    name: str
    table: str
    column: str
    referenced_table: str
    referenced_column: str
    update_rule: str = "NO ACTION"
    delete_rule: str = "NO ACTION"


@dataclass(frozen=True)
class IndexDescriptor:
    """A secondary (non primary key) index."""
    name: str
    table: str
    columns: Tuple[str, ...]
    is_unique: bool = False

    @property
    def column(self) -> str:
        """Leading column of the index."""
        return self.columns[0]


def resolve_primary_key(columns: Sequence[ColumnDescriptor]) -> Optional[str]:
    """Pick the primary key column.

    The first identity column in ordinal order wins; without one the first
    column in ordinal order is used.
    """
    ordered = sorted(columns, key=lambda c: c.ordinal_position)
    if not ordered:
        return None
    for col in ordered:
        if col.is_identity:
            return col.name
    return ordered[0].name


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    columns: Tuple[ColumnDescriptor, ...]
    primary_key: Optional[str] = field(default=None)

    @classmethod
    def build(cls, name: str, columns: Sequence[ColumnDescriptor]) -> "TableDescriptor":
        ordered = tuple(sorted(columns, key=lambda c: c.ordinal_position))
        return cls(name=name, columns=ordered, primary_key=resolve_primary_key(ordered))

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(col.name for col in self.columns)

    def column(self, name: str) -> Optional[ColumnDescriptor]:
        for col in self.columns:
            if col.name == name:
                return col
        return None
