from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.errors import ValidationError
from app.models.property import PROPERTY_STATUSES, PROPERTY_TYPES
from app.schemas.common import envelope
from app.schemas.property import PropertyOut, PropertyStatus, PropertyType, RemoveImageIn
from app.services import form_payload
from app.services.auth import Actor, get_optional_actor, require_admin
from app.services.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT
from app.services.properties import (
    create_property,
    delete_property,
    get_visible_property,
    property_stats,
    remove_property_image,
    update_property,
    validate_create,
    validate_update,
)
from app.services.property_query import DEFAULT_SORT, PropertyFilters, search_properties
from app.services.storage import LocalImageStore, get_image_store

router = APIRouter(prefix="/properties")

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _out(prop) -> dict:
    return PropertyOut.from_model(prop).to_response()


def _applied_filters(request: Request) -> dict:
    applied = {}
    for key in dict.fromkeys(request.query_params.keys()):
        values = request.query_params.getlist(key)
        applied[key] = values if len(values) > 1 else values[0]
    return applied


async def _read_write_request(request: Request) -> form_payload.WriteRequest:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        return form_payload.from_form(form)

    raw = await request.body()
    if not raw.strip():
        return form_payload.WriteRequest()
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    return form_payload.from_json(body)


@router.get("")
async def list_properties(
    request: Request,
    page: int = Query(default=DEFAULT_PAGE, ge=1),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    sort: str = Query(default=DEFAULT_SORT, max_length=100),
    search: str | None = Query(default=None, max_length=200),
    type: PropertyType | None = Query(default=None),
    status: PropertyStatus | Literal["all"] | None = Query(default=None),
    min_price: float | None = Query(default=None, alias="minPrice", ge=0),
    max_price: float | None = Query(default=None, alias="maxPrice", ge=0),
    bedrooms: int | None = Query(default=None, ge=0),
    bathrooms: float | None = Query(default=None, ge=0),
    min_area: float | None = Query(default=None, alias="minArea", ge=0),
    max_area: float | None = Query(default=None, alias="maxArea", ge=0),
    features: list[str] | None = Query(default=None),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    radius: float | None = Query(default=None, ge=0, le=100),
    pet_friendly: bool | None = Query(default=None, alias="petFriendly"),
    furnished: bool | None = Query(default=None),
    actor: Actor | None = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> dict:
    filters = PropertyFilters.from_query(
        search=search,
        type=type,
        status=status,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        min_area=min_area,
        max_area=max_area,
        features=features,
        pet_friendly=pet_friendly,
        furnished=furnished,
        latitude=latitude,
        longitude=longitude,
        radius=radius,
    )
    result = await search_properties(
        db,
        filters,
        is_admin=bool(actor and actor.is_admin),
        page=page,
        limit=limit,
        sort=sort,
    )
    return envelope({
        "properties": [_out(p) for p in result.items],
        "pagination": result.pagination.to_dict(),
        "filters": {
            "applied": _applied_filters(request),
            "available": {"types": list(PROPERTY_TYPES), "statuses": list(PROPERTY_STATUSES)},
        },
    })


@router.get("/admin/stats")
async def get_stats(
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return envelope(await property_stats(db))


@router.get("/{property_id}")
async def get_property_detail(
    property_id: str,
    actor: Actor | None = Depends(get_optional_actor),
    db: AsyncSession = Depends(get_db),
) -> dict:
    prop = await get_visible_property(db, property_id, actor)
    return envelope({"property": _out(prop)})


@router.post("", status_code=201)
async def create_property_endpoint(
    request: Request,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
) -> dict:
    write = await _read_write_request(request)
    data = validate_create(write.payload)
    uploads = await store.read_uploads(write.files)

    prop = await create_property(db, data, store=store, uploads=uploads, actor=actor)
    return envelope({"property": _out(prop)}, "Property created successfully")


@router.put("/{property_id}")
async def update_property_endpoint(
    property_id: str,
    request: Request,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
) -> dict:
    write = await _read_write_request(request)
    data = validate_update(write.payload)
    uploads = await store.read_uploads(write.files)

    prop = await update_property(
        db,
        property_id,
        data,
        store=store,
        uploads=uploads,
        replace_images=write.replace_images,
        images_to_delete=write.images_to_delete,
        actor=actor,
    )
    return envelope({"property": _out(prop)}, "Property updated successfully")


@router.delete("/{property_id}")
async def delete_property_endpoint(
    property_id: str,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
) -> dict:
    await delete_property(db, property_id, store=store, actor=actor)
    return envelope(message="Property deleted successfully")


@router.delete("/{property_id}/images")
async def remove_image_endpoint(
    property_id: str,
    payload: RemoveImageIn | None = Body(default=None),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    store: LocalImageStore = Depends(get_image_store),
) -> dict:
    image_url = payload.image_url if payload else None
    prop = await remove_property_image(db, property_id, image_url, store=store, actor=actor)
    return envelope({"property": _out(prop)}, "Image removed successfully")
