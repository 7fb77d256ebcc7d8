from app.models.base import Base  # noqa: F401

from app.models.user import User  # noqa: F401
from app.models.property import Property, PropertyFeature  # noqa: F401
