"""Field allowlist of a permission.

Patterns are dot paths. ``*`` as the last segment matches every direct
field but no relation; ``rel.*`` opens one relation, ``*.*`` opens every
relation one level deep. A bare relation name opens that relation with all
of its direct fields. ``None`` means no restriction at all.
"""

from collections.abc import Iterable
from dataclasses import dataclass

WILDCARD = "*"


@dataclass(frozen=True)
class FieldAllowlist:
    """Set of field path patterns a caller may see or write."""

    patterns: tuple[tuple[str, ...], ...] | None

    @classmethod
    def all(cls) -> "FieldAllowlist":
        return cls(None)

    @classmethod
    def none(cls) -> "FieldAllowlist":
        return cls(())

    @classmethod
    def from_fields(cls, fields: Iterable[str] | None) -> "FieldAllowlist":
        """Build from a permission's ``fields`` list (None = all fields)."""
        if fields is None:
            return cls.all()
        patterns = tuple(
            tuple(seg.strip() for seg in f.split(".")) for f in fields if f and f.strip()
        )
        return cls(patterns)

    @property
    def is_all(self) -> bool:
        return self.patterns is None

    @property
    def is_empty(self) -> bool:
        return self.patterns == ()

    def allows_field(self, name: str) -> bool:
        """Whether a direct (non-relation) field is allowed."""
        if self.patterns is None:
            return True
        return any(len(p) == 1 and p[0] in (name, WILDCARD) for p in self.patterns)

    def allows_relation(self, name: str) -> bool:
        """Whether anything behind the relation is allowed."""
        if self.patterns is None:
            return True
        for p in self.patterns:
            if len(p) == 1 and p[0] == name:
                return True
            if len(p) > 1 and p[0] in (name, WILDCARD):
                return True
        return False

    def for_relation(self, name: str) -> "FieldAllowlist":
        """Allowlist that applies to rows of the given relation."""
        if self.patterns is None:
            return self
        nested: list[tuple[str, ...]] = []
        for p in self.patterns:
            if len(p) == 1 and p[0] == name:
                nested.append((WILDCARD,))
            elif len(p) > 1 and p[0] in (name, WILDCARD):
                nested.append(p[1:])
        return FieldAllowlist(tuple(dict.fromkeys(nested)))

    def allows_path(self, path: str) -> bool:
        """Whether a dotted path ``rel.rel.field`` is allowed.

        Every segment except the last is treated as a relation.
        """
        segments = path.split(".")
        current = self
        for segment in segments[:-1]:
            if not current.allows_relation(segment):
                return False
            current = current.for_relation(segment)
        return current.allows_field(segments[-1])
