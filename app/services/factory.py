# app/services/factory.py
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import NotFound, QueryCastError
from app.db.session import run_with_timeout
from app.models.base import Base
from app.services.query import QueryBuilder, ListQuery

BeforeWrite = Callable[[AsyncSession, Dict[str, Any], Optional[Base]], Awaitable[Dict[str, Any]]]
AfterWrite = Callable[[AsyncSession, Base, str], Awaitable[None]]


def _snapshot_value(value):
    if isinstance(value, Base):
        return value.sid
    if isinstance(value, (list, tuple)) and value and all(isinstance(v, Base) for v in value):
        return [v.sid for v in value]
    return value


class ResourceHandler:
    """
    Create/read/update/delete/list operations for one model.

    Implicit model hooks are replaced by explicit steps: `base_filters` are added
    to every read, `before_write` may rewrite the column values of a create or
    update, and `after_write` runs once a create/update/delete is committed.
    """

    def __init__(
            self,
            model: Type[Base],
            schema: Type[BaseModel],
            *,
            create_schema: Type[BaseModel],
            update_schema: Type[BaseModel],
            detail_schema: Optional[Type[BaseModel]] = None,
            populate: Sequence[str] = (),
            filterable: Iterable[str] = (),
            sortable: Optional[Iterable[str]] = None,
            default_sort: str = "-created_at",
            base_filters: Optional[Callable[[], List[Any]]] = None,
            before_write: Optional[BeforeWrite] = None,
            after_write: Optional[AfterWrite] = None,
            unknown_filter_policy: str = "reject",
    ):
        self.model = model
        self.schema = schema
        self.create_schema = create_schema
        self.update_schema = update_schema
        self.detail_schema = detail_schema or schema
        self.populate = tuple(populate)
        self.base_filters = base_filters
        self.before_write = before_write
        self.after_write = after_write
        self.query_builder = QueryBuilder(
            model,
            filterable=filterable,
            sortable=sortable,
            default_sort=default_sort,
            unknown_policy=unknown_filter_policy,
        )

    @property
    def name(self) -> str:
        return self.model.__name__

    def select(self, populate: Sequence[str] = (), filtered: bool = True):
        stmt = select(self.model)
        for path in populate:
            stmt = stmt.options(selectinload(getattr(self.model, path)))
        if filtered and self.base_filters:
            stmt = stmt.where(*self.base_filters())
        return stmt

    def serialize(self, obj: Base, query: Optional[ListQuery] = None, detail: bool = False) -> Dict[str, Any]:
        schema = self.detail_schema if detail else self.schema
        item = schema.model_validate(obj).model_dump(mode="json")
        return query.project(item) if query else item

    async def find(
            self,
            db: AsyncSession,
            sid: str,
            populate: Sequence[str] = (),
            filtered: bool = True,
    ) -> Base:
        if not Base.is_valid_sid(sid):
            raise QueryCastError("sid", sid)
        stmt = self.select(populate, filtered).where(self.model.sid == sid).execution_options(populate_existing=True)
        result = await run_with_timeout(db.execute(stmt))
        obj = result.scalar_one_or_none()
        if obj is None:
            raise NotFound()
        return obj

    async def list(
            self,
            db: AsyncSession,
            params: Sequence[Tuple[str, str]],
            extra_filters: Sequence[Any] = (),
    ) -> List[Dict[str, Any]]:
        query = self.query_builder.build(params)
        stmt = self.query_builder.apply(self.select().where(*extra_filters), query)
        result = await run_with_timeout(db.execute(stmt))
        return [self.serialize(obj, query) for obj in result.scalars().all()]

    async def get_one(self, db: AsyncSession, sid: str) -> Dict[str, Any]:
        obj = await self.find(db, sid, self.populate)
        return self.serialize(obj, detail=bool(self.populate))

    async def reload(self, db: AsyncSession, sid: str) -> Dict[str, Any]:
        # a write may move the record outside base_filters (e.g. a tour made secret)
        obj = await self.find(db, sid, self.populate, filtered=False)
        return self.serialize(obj, detail=bool(self.populate))

    async def create(self, db: AsyncSession, body: Dict[str, Any]) -> Dict[str, Any]:
        values = self.create_schema.model_validate(body).model_dump(mode="json")
        if self.before_write:
            values = await self.before_write(db, values, None)

        obj = self.model(sid=Base.generate_sid(), **values)
        db.add(obj)
        await run_with_timeout(db.commit())
        logger.info(f"{self.name} {obj.sid} created")

        if self.after_write:
            await self.after_write(db, obj, "create")
        return await self.reload(db, obj.sid)

    async def update_one(self, db: AsyncSession, sid: str, body: Dict[str, Any]) -> Dict[str, Any]:
        obj = await self.find(db, sid)
        changes = self.update_schema.model_validate(body).model_dump(exclude_unset=True)

        current = {
            name: _snapshot_value(getattr(obj, name))
            for name in self.create_schema.model_fields
            if hasattr(obj, name)
        }
        merged = self.create_schema.model_validate({**current, **changes}).model_dump(mode="json")
        values = {name: merged[name] for name in changes if name in merged}

        if self.before_write:
            values = await self.before_write(db, values, obj)
        for name, value in values.items():
            setattr(obj, name, value)

        await run_with_timeout(db.commit())
        logger.info(f"{self.name} {sid} updated: {sorted(values)}")

        if self.after_write:
            await self.after_write(db, obj, "update")
        return await self.reload(db, sid)

    async def delete_one(self, db: AsyncSession, sid: str) -> None:
        obj = await self.find(db, sid)
        await db.delete(obj)
        await run_with_timeout(db.commit())
        logger.info(f"{self.name} {sid} deleted")

        if self.after_write:
            await self.after_write(db, obj, "delete")
