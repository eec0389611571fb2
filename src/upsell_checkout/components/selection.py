"""Per-product variant selection."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from upsell_checkout.models import ProductGroup, VariantRef


class SelectionState(Mapping[str, str]):
    """Maps each product heading to the id of its chosen variant.

    Instances are treated as values: :meth:`select` returns a new state and
    leaves the receiver untouched.  The variant id passed to ``select`` is
    not checked against the group; lookups through :meth:`selected_variant`
    fall back to the group's first variant when it does not match.
    """

    def __init__(self, selections: Mapping[str, str] | None = None) -> None:
        self._selections: dict[str, str] = dict(selections or {})

    @classmethod
    def initialize(cls, groups: Iterable[ProductGroup]) -> SelectionState:
        """Select the first variant of every group."""
        return cls({group.heading: group.first_variant.id for group in groups})

    def select(self, heading: str, variant_id: str) -> SelectionState:
        """Return a copy with *heading* pointing at *variant_id*.

        Raises ``KeyError`` for a heading that has no group.
        """
        if heading not in self._selections:
            raise KeyError(heading)
        updated = dict(self._selections)
        updated[heading] = variant_id
        return SelectionState(updated)

    def selected_variant(self, group: ProductGroup) -> VariantRef:
        return group.find_variant(self._selections.get(group.heading)) or group.first_variant

    def __getitem__(self, heading: str) -> str:
        return self._selections[heading]

    def __iter__(self) -> Iterator[str]:
        return iter(self._selections)

    def __len__(self) -> int:
        return len(self._selections)

    def __repr__(self) -> str:
        return f"SelectionState({self._selections!r})"
