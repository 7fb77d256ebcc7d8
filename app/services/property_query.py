"""
Listing search: request parameters -> SQL predicate -> one page of rows.

``PropertyFilters`` uses ``None`` as the only "not supplied" marker, so
``bedrooms=0`` or ``petFriendly=false`` are real filters and never confused
with an absent parameter.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, UnaryExpression, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.property import Property, PropertyFeature
from app.services.geo import DEFAULT_RADIUS_KM, find_nearby_ids
from app.services.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, Pagination, paginate

STATUS_ALL = "all"
PUBLIC_STATUS = "available"
DEFAULT_SORT = "-createdAt"

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}

SORTABLE_FIELDS = {
    "createdAt": Property.created_at,
    "updatedAt": Property.updated_at,
    "price": Property.price,
    "bedrooms": Property.bedrooms,
    "bathrooms": Property.bathrooms,
    "area": Property.area,
    "title": Property.title,
    "yearBuilt": Property.year_built,
}


def _parse_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    v = str(value).strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    return None


def _parse_text(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def _parse_features(value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    raw = [value] if isinstance(value, str) else list(value)
    out: list[str] = []
    for item in raw:
        for part in str(item).split(","):
            part = part.strip()
            if part and part not in out:
                out.append(part)
    return tuple(out) or None


@dataclass(frozen=True)
class PropertyFilters:
    search: str | None = None
    type: str | None = None
    status: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    bedrooms: int | None = None
    bathrooms: float | None = None
    min_area: float | None = None
    max_area: float | None = None
    features: tuple[str, ...] | None = None
    pet_friendly: bool | None = None
    furnished: bool | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius: float | None = None

    @classmethod
    def from_query(cls, **params: Any) -> "PropertyFilters":
        """
        Build filters from raw request values.

        Values that cannot be parsed are treated as absent.
        """
        return cls(
            search=_parse_text(params.get("search")),
            type=_parse_text(params.get("type")),
            status=_parse_text(params.get("status")),
            min_price=_parse_float(params.get("min_price")),
            max_price=_parse_float(params.get("max_price")),
            bedrooms=_parse_int(params.get("bedrooms")),
            bathrooms=_parse_float(params.get("bathrooms")),
            min_area=_parse_float(params.get("min_area")),
            max_area=_parse_float(params.get("max_area")),
            features=_parse_features(params.get("features")),
            pet_friendly=_parse_bool(params.get("pet_friendly")),
            furnished=_parse_bool(params.get("furnished")),
            latitude=_parse_float(params.get("latitude")),
            longitude=_parse_float(params.get("longitude")),
            radius=_parse_float(params.get("radius")),
        )

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class PropertyPage:
    items: list[Property]
    pagination: Pagination


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _range(column, low: float | None, high: float | None) -> list[ColumnElement[bool]]:
    out = []
    if low is not None:
        out.append(column >= low)
    if high is not None:
        out.append(column <= high)
    return out


def build_property_conditions(filters: PropertyFilters, *, is_admin: bool) -> list[ColumnElement[bool]]:
    """
    Translate filters into AND-ed clauses. Geo filtering is not included; see
    :func:`search_properties`.
    """
    conds: list[ColumnElement[bool]] = []

    # Visibility comes first so a caller-supplied status can't widen it
    if is_admin:
        status = filters.status or PUBLIC_STATUS
        if status != STATUS_ALL:
            conds.append(Property.status == status)
    else:
        conds.append(Property.status == PUBLIC_STATUS)

    if filters.search:
        pattern = f"%{escape_like(filters.search)}%"
        conds.append(
            or_(
                Property.title.ilike(pattern, escape="\\"),
                Property.description.ilike(pattern, escape="\\"),
                Property.address.ilike(pattern, escape="\\"),
            )
        )

    if filters.type:
        conds.append(Property.type == filters.type)

    conds.extend(_range(Property.price, filters.min_price, filters.max_price))

    if filters.bedrooms is not None:
        conds.append(Property.bedrooms >= filters.bedrooms)
    if filters.bathrooms is not None:
        conds.append(Property.bathrooms >= filters.bathrooms)

    conds.extend(_range(Property.area, filters.min_area, filters.max_area))

    # contains-all: one EXISTS per requested feature
    for name in filters.features or ():
        conds.append(Property.feature_rows.any(PropertyFeature.name == name))

    if filters.pet_friendly is not None:
        conds.append(Property.pet_friendly.is_(filters.pet_friendly))
    if filters.furnished is not None:
        conds.append(Property.furnished.is_(filters.furnished))

    return conds


def parse_sort(sort: str | None) -> list[UnaryExpression]:
    order: list[UnaryExpression] = []
    for token in (sort or "").replace(",", " ").split():
        desc = token.startswith("-")
        name = token.lstrip("+-")
        column = SORTABLE_FIELDS.get(name)
        if column is None:
            continue
        order.append(column.desc() if desc else column.asc())
    if not order:
        order.append(Property.created_at.desc())
    order.append(Property.id.asc())
    return order


async def search_properties(
    db: AsyncSession,
    filters: PropertyFilters,
    *,
    is_admin: bool,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
    sort: str | None = DEFAULT_SORT,
) -> PropertyPage:
    conds = build_property_conditions(filters, is_admin=is_admin)

    if filters.has_location:
        radius = filters.radius if filters.radius is not None else DEFAULT_RADIUS_KM
        nearby = await find_nearby_ids(db, filters.latitude, filters.longitude, radius)
        if not nearby:
            # Empty box means zero matches, not "no location filter"
            return PropertyPage(items=[], pagination=paginate(0, page, limit))
        conds.append(Property.id.in_(nearby))

    total = (
        await db.execute(select(func.count()).select_from(Property).where(*conds))
    ).scalar_one()
    pagination = paginate(total, page, limit)

    stmt = (
        select(Property)
        .where(*conds)
        .order_by(*parse_sort(sort))
        .offset(pagination.skip)
        .limit(pagination.limit)
    )
    items = list((await db.execute(stmt)).scalars().all())
    return PropertyPage(items=items, pagination=pagination)
