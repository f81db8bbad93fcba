"""Persistence of nested relation data sent with a create or update."""

import logging
from typing import Any

from querygate.application.ports import UnitOfWork
from querygate.application.use_cases.items.payload import RelatedWrite, WritePayload
from querygate.domain.entities import CollectionSchema, RelationType
from querygate.domain.exceptions import ValidationError
from querygate.domain.value_objects import Condition, Operator

logger = logging.getLogger(__name__)


async def write_to_one(uow: UnitOfWork, payload: WritePayload) -> None:
    """Create nested to-one targets and store their keys on the item."""
    for write in payload.related:
        relation = write.relation
        if not relation.is_to_one or not write.rows:
            continue
        if relation.foreign_key is None:
            raise ValidationError(f"Relation '{relation.name}' is missing its foreign key")
        payload.values[relation.foreign_key] = await uow.items.create(relation.target, write.rows[0])


async def write_to_many(
    uow: UnitOfWork, schema: CollectionSchema, payload: WritePayload, key: Any
) -> None:
    """Create or link to-many targets of the item with the given key."""
    for write in payload.related:
        if write.relation.type is RelationType.O2M:
            await _write_o2m(uow, write, key)
        elif write.relation.type is RelationType.M2M:
            await _write_m2m(uow, write, key)
    logger.debug("Wrote nested data of %s %s", schema.name, key)


async def _write_o2m(uow: UnitOfWork, write: RelatedWrite, key: Any) -> None:
    relation = write.relation
    if relation.foreign_key is None:
        raise ValidationError(f"Relation '{relation.name}' is missing its foreign key")
    for row in write.rows:
        await uow.items.create(relation.target, {**row, relation.foreign_key: key})
    if write.keys:
        await uow.items.update(
            relation.target,
            Condition(write.target_key, Operator.IN, list(write.keys)),
            {relation.foreign_key: key},
        )


async def _write_m2m(uow: UnitOfWork, write: RelatedWrite, key: Any) -> None:
    keys = list(write.keys)
    for row in write.rows:
        keys.append(await uow.items.create(write.relation.target, row))
    if keys:
        await uow.items.link(write.relation, key, keys)
