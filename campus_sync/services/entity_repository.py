# campus_sync/services/entity_repository.py
"""Typed CRUD over one entity kind, mirrored into the entity store."""
import logging
from typing import Any, Generic, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError

from ..core.entity_store import EntityStore
from ..core.exceptions import SchemaError, ValidationError
from ..schemas.base import Entity
from ..schemas.entities import EntityKind
from ..utils.write_fence import WriteFence
from .http_client import ApiClient

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=Entity)


class EntityRepository(Generic[T]):
    """Pessimistic writes: the store changes only after the server confirms."""

    def __init__(
        self,
        kind: EntityKind,
        model: Type[T],
        client: ApiClient,
        store: EntityStore,
        fence: WriteFence,
    ):
        self.kind = kind
        self.model = model
        self.client = client
        self.store = store
        self.fence = fence

    def all(self) -> Tuple[T, ...]:
        return self.store.list(self.kind)

    def get(self, entity_id: str) -> Optional[T]:
        return self.store.get(self.kind, entity_id)

    def _coerce(self, data: Union[T, Mapping[str, Any]]) -> T:
        if isinstance(data, self.model):
            return data
        if isinstance(data, Entity):
            data = data.model_dump(by_alias=True)
        try:
            return self.model.model_validate(dict(data))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {self.kind.value} data", 422, e.errors()) from e

    async def save(self, data: Union[T, Mapping[str, Any]]) -> T:
        """Create when ``data`` has no id, update otherwise. Returns the server record."""
        item = self._coerce(data)
        body = item.to_wire()

        if not item.id:
            body.pop("id", None)
            saved = await self.client.request("POST", f"/{self.kind.path}", json=body, schema=self.model)
            if not saved.id:
                raise SchemaError(f"Server did not assign an id to the new {self.kind.value}")
            self.store.upsert(self.kind, saved)
            logger.info(f"Created {self.kind.value} {saved.id}")
            return saved

        key = (self.kind, item.id)
        token = self.fence.issue(key)
        try:
            saved = await self.client.request(
                "PUT", f"/{self.kind.path}/{item.id}", json=body, schema=self.model,
            )
            if self.fence.is_current(key, token):
                self.store.upsert(self.kind, saved)
                logger.info(f"Updated {self.kind.value} {saved.id}")
            else:
                logger.warning(f"Discarding stale response for {self.kind.value} {item.id}")
            return saved
        finally:
            self.fence.release(key, token)

    async def delete(self, entity_id: str) -> None:
        """Idempotent: a record the server no longer has counts as deleted."""
        key = (self.kind, entity_id)
        token = self.fence.issue(key)
        try:
            await self.client.request("DELETE", f"/{self.kind.path}/{entity_id}", ok_statuses=(404,))
            if self.fence.is_current(key, token):
                self.store.remove(self.kind, entity_id)
                logger.info(f"Deleted {self.kind.value} {entity_id}")
            else:
                logger.warning(f"Newer write pending for {self.kind.value} {entity_id}, keeping local copy")
        finally:
            self.fence.release(key, token)
