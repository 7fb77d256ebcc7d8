from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from app.models.property import DEFAULT_UTILITIES, Property

PropertyType = Literal["house", "apartment", "condo", "townhouse", "villa", "studio"]
PropertyStatus = Literal["available", "sold", "pending", "rented"]

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=100)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=2000)]
Address = Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=200)]

_IMAGE_RE = re.compile(r"^(https?://|/uploads/)")

# Fields that may be omitted on update but never cleared
_NOT_NULL_ON_UPDATE = (
    "title", "description", "address", "price", "type", "status", "bedrooms",
    "bathrooms", "area", "parking_spaces", "pet_friendly", "furnished", "coordinates",
    "images", "features", "utilities",
)


def max_year_built() -> int:
    return datetime.now(timezone.utc).year + 5


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="ignore",
    )


class Coordinates(_CamelModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class CoordinatesUpdate(_CamelModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class Utilities(_CamelModel):
    heating: bool = DEFAULT_UTILITIES["heating"]
    cooling: bool = DEFAULT_UTILITIES["cooling"]
    electricity: bool = DEFAULT_UTILITIES["electricity"]
    water: bool = DEFAULT_UTILITIES["water"]
    internet: bool = DEFAULT_UTILITIES["internet"]


class UtilitiesUpdate(_CamelModel):
    heating: bool | None = None
    cooling: bool | None = None
    electricity: bool | None = None
    water: bool | None = None
    internet: bool | None = None


class ContactInfo(_CamelModel):
    agent_name: Annotated[str, StringConstraints(strip_whitespace=True, max_length=120)] | None = None
    agent_phone: Annotated[str, StringConstraints(strip_whitespace=True, max_length=40)] | None = None
    agent_email: EmailStr | None = None

    @field_validator("agent_email")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v


def _clean_features(values: list[str]) -> list[str]:
    # set-like but order preserving
    out: list[str] = []
    for v in values:
        v2 = v.strip()
        if v2 and v2 not in out:
            out.append(v2)
    return out


def _check_images(values: list[str]) -> list[str]:
    for v in values:
        if not _IMAGE_RE.match(v):
            raise ValueError(f"Invalid image URL format: {v}")
    return values


def _check_year_built(v: int | None) -> int | None:
    if v is not None and not (1800 <= v <= max_year_built()):
        raise ValueError(f"Year built must be between 1800 and {max_year_built()}")
    return v


class PropertyCreate(_CamelModel):
    title: Title
    description: Description
    address: Address
    price: float = Field(ge=0)
    type: PropertyType
    status: PropertyStatus = "available"
    bedrooms: int = Field(ge=0)
    bathrooms: float = Field(ge=0)
    area: float = Field(ge=1)
    year_built: int | None = None
    parking_spaces: int = Field(default=0, ge=0)
    pet_friendly: bool = False
    furnished: bool = False
    coordinates: Coordinates
    images: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    utilities: Utilities = Field(default_factory=Utilities)
    contact_info: ContactInfo | None = None

    @field_validator("features")
    @classmethod
    def clean_features(cls, v: list[str]) -> list[str]:
        return _clean_features(v)

    @field_validator("images")
    @classmethod
    def check_images(cls, v: list[str]) -> list[str]:
        return _check_images(v)

    @field_validator("year_built")
    @classmethod
    def check_year_built(cls, v: int | None) -> int | None:
        return _check_year_built(v)


class PropertyUpdate(_CamelModel):
    """Partial update: only fields present in the request are applied."""

    title: Title | None = None
    description: Description | None = None
    address: Address | None = None
    price: float | None = Field(default=None, ge=0)
    type: PropertyType | None = None
    status: PropertyStatus | None = None
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    area: float | None = Field(default=None, ge=1)
    year_built: int | None = None
    parking_spaces: int | None = Field(default=None, ge=0)
    pet_friendly: bool | None = None
    furnished: bool | None = None
    coordinates: CoordinatesUpdate | None = None
    images: list[str] | None = None
    features: list[str] | None = None
    utilities: UtilitiesUpdate | None = None
    contact_info: ContactInfo | None = None

    @field_validator(*_NOT_NULL_ON_UPDATE)
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("features")
    @classmethod
    def clean_features(cls, v: list[str] | None) -> list[str] | None:
        return _clean_features(v) if v is not None else v

    @field_validator("images")
    @classmethod
    def check_images(cls, v: list[str] | None) -> list[str] | None:
        return _check_images(v) if v is not None else v

    @field_validator("year_built")
    @classmethod
    def check_year_built(cls, v: int | None) -> int | None:
        return _check_year_built(v)


class PropertyOut(_CamelModel):
    id: str
    title: str
    description: str
    address: str
    price: float
    type: str
    status: str
    bedrooms: int
    bathrooms: float
    area: float
    year_built: int | None
    parking_spaces: int
    pet_friendly: bool
    furnished: bool
    coordinates: Coordinates
    images: list[str]
    features: list[str]
    utilities: Utilities
    contact_info: ContactInfo | None
    price_per_sq_ft: int
    formatted_price: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, p: Property) -> "PropertyOut":
        return cls(
            id=p.id,
            title=p.title,
            description=p.description,
            address=p.address,
            price=p.price,
            type=p.type,
            status=p.status,
            bedrooms=p.bedrooms,
            bathrooms=p.bathrooms,
            area=p.area,
            year_built=p.year_built,
            parking_spaces=p.parking_spaces,
            pet_friendly=p.pet_friendly,
            furnished=p.furnished,
            coordinates=Coordinates(latitude=p.latitude, longitude=p.longitude),
            images=list(p.images or []),
            features=list(p.features),
            utilities=Utilities(**{**DEFAULT_UTILITIES, **(p.utilities or {})}),
            contact_info=ContactInfo(**p.contact_info) if p.contact_info else None,
            price_per_sq_ft=round(p.price / p.area) if p.area else 0,
            formatted_price=format_usd(p.price),
            created_at=p.created_at,
            updated_at=p.updated_at,
        )

    def to_response(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True)
        data["_id"] = data["id"]
        return data


def format_usd(amount: float) -> str:
    if float(amount).is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}".rstrip("0").rstrip(".")


class RemoveImageIn(_CamelModel):
    image_url: str | None = None
