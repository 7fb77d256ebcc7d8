from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.ext.associationproxy import AssociationProxy, association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.ids import gen_id
from app.models.base import Base, AuditMixin, JSONType

PROPERTY_TYPES = ("house", "apartment", "condo", "townhouse", "villa", "studio")
PROPERTY_STATUSES = ("available", "sold", "pending", "rented")

DEFAULT_UTILITIES = {
    "heating": False,
    "cooling": False,
    "electricity": True,
    "water": True,
    "internet": False,
}


class PropertyFeature(Base):
    __tablename__ = "property_features"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(
        String, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)


class Property(AuditMixin, Base):
    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_coordinates", "latitude", "longitude"),
        Index("ix_properties_type_status", "type", "status"),
        Index("ix_properties_bedrooms_bathrooms", "bedrooms", "bathrooms"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("prp"))

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(String(200), nullable=False)

    price: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    # one of PROPERTY_TYPES / PROPERTY_STATUSES
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="available")

    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False)
    bathrooms: Mapped[float] = mapped_column(Float, nullable=False)
    area: Mapped[float] = mapped_column(Float, nullable=False)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)
    parking_spaces: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pet_friendly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    furnished: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    # Ordered public paths or absolute URLs
    images: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    utilities: Mapped[dict] = mapped_column(JSONType, nullable=False, default=lambda: dict(DEFAULT_UTILITIES))
    contact_info: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    feature_rows: Mapped[list[PropertyFeature]] = relationship(
        order_by=PropertyFeature.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    features: AssociationProxy[list[str]] = association_proxy(
        "feature_rows", "name", creator=lambda name: PropertyFeature(name=name)
    )

    def is_available(self) -> bool:
        return self.status == "available"
