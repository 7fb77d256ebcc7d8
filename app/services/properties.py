from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Text, case, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError, from_pydantic
from app.core.ids import is_valid_id
from app.models.property import DEFAULT_UTILITIES, PROPERTY_STATUSES, Property, PropertyFeature
from app.schemas.property import PropertyCreate, PropertyUpdate
from app.services.auth import Actor
from app.services.property_query import escape_like
from app.services.storage import LocalImageStore, PendingImage

log = logging.getLogger(__name__)

PROPERTY_NOT_FOUND = "Property not found"

# Columns that map 1:1 from the validated payload
_SCALAR_FIELDS = (
    "title", "description", "address", "price", "type", "status", "bedrooms",
    "bathrooms", "area", "year_built", "parking_spaces", "pet_friendly", "furnished",
)


def validate_create(payload: dict[str, Any]) -> PropertyCreate:
    try:
        return PropertyCreate.model_validate(payload)
    except PydanticValidationError as e:
        raise from_pydantic(e)


def validate_update(payload: dict[str, Any]) -> PropertyUpdate:
    try:
        return PropertyUpdate.model_validate(payload)
    except PydanticValidationError as e:
        raise from_pydantic(e)


async def get_property(db: AsyncSession, property_id: str) -> Property:
    if not is_valid_id(property_id, "prp"):
        raise NotFoundError(PROPERTY_NOT_FOUND)
    prop = await db.get(Property, property_id, populate_existing=True)
    if prop is None:
        raise NotFoundError(PROPERTY_NOT_FOUND)
    return prop


async def get_visible_property(db: AsyncSession, property_id: str, actor: Actor | None) -> Property:
    prop = await get_property(db, property_id)
    # Hidden listings look exactly like missing ones to the public
    if not prop.is_available() and not (actor and actor.is_admin):
        raise NotFoundError(PROPERTY_NOT_FOUND)
    return prop


def build_property(data: PropertyCreate, *, images: list[str], author: str) -> Property:
    prop = Property(
        **{name: getattr(data, name) for name in _SCALAR_FIELDS},
        latitude=data.coordinates.latitude,
        longitude=data.coordinates.longitude,
        images=images,
        utilities=data.utilities.model_dump(),
        contact_info=data.contact_info.model_dump(exclude_none=True) if data.contact_info else None,
        created_by=author,
        updated_by=author,
        # built here so the collection is loaded even when empty
        feature_rows=[PropertyFeature(name=name) for name in data.features],
    )
    return prop


async def create_property(
    db: AsyncSession,
    data: PropertyCreate,
    *,
    store: LocalImageStore,
    uploads: list[PendingImage],
    actor: Actor,
) -> Property:
    saved = store.put_all(uploads)
    prop = build_property(data, images=[*data.images, *saved], author=actor.user_id)

    try:
        db.add(prop)
        await db.commit()
    except Exception:
        await db.rollback()
        store.delete_all(saved)
        raise

    log.info("property created: id=%s by=%s images=%d", prop.id, actor.user_id, len(prop.images))
    return prop


def _apply_update(prop: Property, data: PropertyUpdate) -> None:
    fields = data.model_fields_set

    for name in _SCALAR_FIELDS:
        if name in fields:
            setattr(prop, name, getattr(data, name))

    if "coordinates" in fields and data.coordinates is not None:
        if data.coordinates.latitude is not None:
            prop.latitude = data.coordinates.latitude
        if data.coordinates.longitude is not None:
            prop.longitude = data.coordinates.longitude

    if "features" in fields and data.features is not None:
        prop.features = list(data.features)

    if "utilities" in fields and data.utilities is not None:
        changes = data.utilities.model_dump(exclude_none=True)
        prop.utilities = {**DEFAULT_UTILITIES, **(prop.utilities or {}), **changes}

    if "contact_info" in fields:
        if data.contact_info is None:
            prop.contact_info = None
        else:
            changes = data.contact_info.model_dump(exclude_unset=True)
            prop.contact_info = {**(prop.contact_info or {}), **changes}


async def update_property(
    db: AsyncSession,
    property_id: str,
    data: PropertyUpdate,
    *,
    store: LocalImageStore,
    uploads: list[PendingImage],
    replace_images: bool,
    images_to_delete: list[str],
    actor: Actor,
) -> Property:
    """
    Partial update. New uploads are appended to the image list, or replace it
    when ``replace_images`` is set (the old local files are removed).
    """
    prop = await get_property(db, property_id)

    _apply_update(prop, data)

    images = list(data.images) if data.images is not None else list(prop.images or [])
    dropped = [img for img in images if img in images_to_delete]
    images = [img for img in images if img not in images_to_delete]

    saved = store.put_all(uploads)
    if saved:
        if replace_images:
            dropped.extend(images)
            images = saved
        else:
            images = images + saved
    if data.images is not None:
        dropped.extend(img for img in prop.images or [] if img not in data.images)
    prop.images = images
    prop.updated_by = actor.user_id

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        store.delete_all(saved)
        raise

    # Files go only once the row no longer references them
    await release_images(db, store, [img for img in dropped if img not in images], owner_id=prop.id)
    log.info("property updated: id=%s by=%s", prop.id, actor.user_id)
    return prop


async def release_images(
    db: AsyncSession,
    store: LocalImageStore,
    paths: list[str],
    *,
    owner_id: str,
) -> None:
    """
    Delete the local files behind ``paths`` unless another property still
    lists them. Call after the owner's change is committed.
    """
    local = [p for p in dict.fromkeys(paths) if store.resolve_path(p) is not None]
    if not local:
        return

    # coarse text match on the JSON column, confirmed exactly below
    images_text = cast(Property.images, Text)
    stmt = select(Property.images).where(
        Property.id != owner_id,
        or_(*(images_text.like(f'%"{escape_like(p)}"%', escape="\\") for p in local)),
    )
    in_use = {img for images in (await db.execute(stmt)).scalars() for img in images or []}

    shared = [p for p in local if p in in_use]
    if shared:
        log.info("keeping shared images: owner=%s count=%d", owner_id, len(shared))
    store.delete_all([p for p in local if p not in in_use])


async def delete_property(db: AsyncSession, property_id: str, *, store: LocalImageStore, actor: Actor) -> None:
    prop = await get_property(db, property_id)
    images = list(prop.images or [])

    await db.delete(prop)
    await db.commit()

    await release_images(db, store, images, owner_id=property_id)
    log.info("property deleted: id=%s by=%s", property_id, actor.user_id)


async def remove_property_image(
    db: AsyncSession,
    property_id: str,
    image_url: str | None,
    *,
    store: LocalImageStore,
    actor: Actor,
) -> Property:
    if not image_url:
        raise ValidationError("Image URL is required")

    prop = await get_property(db, property_id)
    if image_url not in (prop.images or []):
        raise NotFoundError("Image not found in property")

    images = list(prop.images)
    images.remove(image_url)
    prop.images = images
    prop.updated_by = actor.user_id
    await db.commit()

    await release_images(db, store, [image_url], owner_id=prop.id)
    return prop


async def property_stats(db: AsyncSession) -> dict[str, Any]:
    status_counts = [
        func.coalesce(func.sum(case((Property.status == s, 1), else_=0)), 0).label(f"{s}Properties")
        for s in PROPERTY_STATUSES
    ]
    overview_stmt = select(
        func.count(Property.id).label("totalProperties"),
        *status_counts,
        func.avg(Property.price).label("averagePrice"),
        func.sum(Property.price).label("totalValue"),
        func.min(Property.price).label("minPrice"),
        func.max(Property.price).label("maxPrice"),
    )
    row = (await db.execute(overview_stmt)).mappings().one()
    overview = {k: (v if v is not None else 0) for k, v in row.items()}
    for key in ("averagePrice", "totalValue", "minPrice", "maxPrice"):
        overview[key] = float(overview[key])
    for s in PROPERTY_STATUSES:
        overview[f"{s}Properties"] = int(overview[f"{s}Properties"])

    type_stmt = (
        select(
            Property.type,
            func.count(Property.id).label("count"),
            func.avg(Property.price).label("averagePrice"),
        )
        .group_by(Property.type)
        .order_by(Property.type)
    )
    by_type = [
        {"_id": r.type, "count": r.count, "averagePrice": float(r.averagePrice or 0)}
        for r in (await db.execute(type_stmt)).all()
    ]
    return {"overview": overview, "byType": by_type}
