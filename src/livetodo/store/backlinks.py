"""Inverse relationship lookups.

Back-references are never stored. Each query scans the committed
entities of the types that declare the relationship, so the answer is
always consistent with the forward sequences and there is nothing to
invalidate.
"""

from typing import TYPE_CHECKING

from livetodo.store.schema import Entity

if TYPE_CHECKING:
    from livetodo.store.object_store import ObjectStore


class BacklinkResolver:
    """Answers "who references this entity through `relationship`?"."""

    def __init__(self, store: "ObjectStore") -> None:
        self._store = store

    def owning_objects(
        self, entity_id: str, relationship: str, origin: str | None = None
    ) -> tuple[Entity, ...]:
        """Committed entities whose `relationship` sequence contains `entity_id`.

        Args:
            entity_id: Id of the referenced entity.
            relationship: Name of the forward relationship field.
            origin: Restrict the scan to one declaring type.

        Returns:
            Owners in insertion order; empty when there are none.

        Raises:
            SchemaError: No type (or not `origin`) declares `relationship`.
        """
        owners: list[Entity] = []
        for cls in self._store.schema.origins(relationship, origin):
            for candidate in self._store._committed_objects(cls.__type_name__):
                if entity_id in getattr(candidate, relationship):
                    owners.append(candidate)
        return tuple(owners)

    def owners(self, entity_id: str, relationship: str, origin: str | None = None) -> frozenset[str]:
        """Ids of the entities returned by owning_objects()."""
        return frozenset(
            owner.id for owner in self.owning_objects(entity_id, relationship, origin)
        )
