import asyncio
import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.core.config import settings
from app.core.logging import setup_logging
from app.models.property import Property, PropertyFeature
from app.schemas.property import PropertyCreate
from app.services.properties import build_property

log = logging.getLogger(__name__)

SAMPLE_PROPERTIES = [
    {
        "title": "Modern Downtown Apartment",
        "description": "Modern apartment in the heart of downtown with city views, hardwood floors and high-end finishes.",
        "price": 450000,
        "type": "apartment",
        "bedrooms": 2,
        "bathrooms": 2,
        "area": 1200,
        "address": "123 Main Street, Downtown, NY 10001",
        "coordinates": {"latitude": 40.7589, "longitude": -73.9851},
        "images": ["https://images.unsplash.com/photo-1545324418-cc1a3fa10c00?w=800&h=600&fit=crop"],
        "features": ["Hardwood Floors", "City Views", "Modern Kitchen", "Balcony"],
        "yearBuilt": 2020,
        "parkingSpaces": 1,
        "petFriendly": True,
        "utilities": {"heating": True, "cooling": True, "internet": True},
        "contactInfo": {"agentName": "Sarah Johnson", "agentPhone": "(555) 123-4567",
                        "agentEmail": "sarah.johnson@propertyhub.com"},
    },
    {
        "title": "Luxury Suburban Villa",
        "description": "Four-bedroom villa with gourmet kitchen, master suite, private pool and landscaped gardens.",
        "price": 1250000,
        "type": "villa",
        "bedrooms": 4,
        "bathrooms": 3,
        "area": 3200,
        "address": "456 Oak Avenue, Westfield, NJ 07090",
        "coordinates": {"latitude": 40.6590, "longitude": -74.3490},
        "images": ["https://images.unsplash.com/photo-1600596542815-ffad4c1539a9?w=800&h=600&fit=crop"],
        "features": ["Private Pool", "Gourmet Kitchen", "Master Suite", "Home Office"],
        "yearBuilt": 2018,
        "parkingSpaces": 3,
        "utilities": {"heating": True, "cooling": True, "internet": True},
    },
    {
        "title": "Cozy Studio Near Campus",
        "description": "Bright furnished studio a short walk from campus, with an efficient kitchenette and laundry.",
        "price": 185000,
        "type": "studio",
        "bedrooms": 0,
        "bathrooms": 1,
        "area": 450,
        "address": "78 College Road, Cambridge, MA 02139",
        "coordinates": {"latitude": 42.3601, "longitude": -71.0942},
        "features": ["Furnished", "Laundry"],
        "furnished": True,
    },
    {
        "title": "Family Townhouse with Garden",
        "description": "Three-storey townhouse with a private garden, garage and renovated kitchen in a quiet street.",
        "price": 620000,
        "type": "townhouse",
        "status": "pending",
        "bedrooms": 3,
        "bathrooms": 2.5,
        "area": 1850,
        "address": "9 Maple Court, Hoboken, NJ 07030",
        "coordinates": {"latitude": 40.7440, "longitude": -74.0324},
        "features": ["Garden", "Garage", "Balcony"],
        "parkingSpaces": 1,
        "petFriendly": True,
    },
]


async def main():
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    async with Session() as db:
        await db.execute(delete(PropertyFeature))
        await db.execute(delete(Property))

        for raw in SAMPLE_PROPERTIES:
            data = PropertyCreate.model_validate(raw)
            db.add(build_property(data, images=list(data.images), author="script"))

        await db.commit()
        log.info("seeded %d properties", len(SAMPLE_PROPERTIES))

    await engine.dispose()

if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_format)
    asyncio.run(main())
