"""
Reference data loaded at startup
"""
from typing import Dict, List
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.config import settings
from db.models import Attraction
from db.repositories import AttractionRepository, UserRepository
from services.access import hash_password

logger = logging.getLogger(__name__)


ZOO_ATTRACTIONS: List[Dict] = [
    {
        "name": "African Savanna",
        "description": "See lions, zebras and giraffes in open habitat",
        "category": "Mammals",
        "latitude": 51.5350,
        "longitude": -0.1507,
        "capacity": 200,
        "estimated_duration_minutes": 45
    },
    {
        "name": "Penguin Pool",
        "description": "Watch playful penguins dive, swim, smile and wave",
        "category": "Birds",
        "latitude": 51.5355,
        "longitude": -0.1500,
        "capacity": 100,
        "estimated_duration_minutes": 30
    },
    {
        "name": "Reptile House",
        "description": "Explore snakes, lizards and crocodiles",
        "category": "Reptiles",
        "latitude": 51.5345,
        "longitude": -0.1500,
        "capacity": 100,
        "estimated_duration_minutes": 25
    },
    {
        "name": "Tropical Forest",
        "description": "Discover monkeys, birds and exotic insects",
        "category": "Mammals",
        "latitude": 51.5360,
        "longitude": -0.1515,
        "capacity": 180,
        "estimated_duration_minutes": 50
    },
    {
        "name": "Big Cats Arena",
        "description": "View tigers, leopards and panthers",
        "category": "Mammals",
        "latitude": 51.5340,
        "longitude": -0.1495,
        "capacity": 250,
        "estimated_duration_minutes": 40
    },
]


async def seed_attractions(db: AsyncSession, attractions: List[Dict] = ZOO_ATTRACTIONS) -> int:
    """Insert attractions (and their zeroed queues) that are not there yet"""
    result = await db.execute(select(Attraction.name))
    existing = set(result.scalars().all())

    repo = AttractionRepository(db)
    created = 0
    for data in attractions:
        if data["name"] in existing:
            continue
        await repo.create(**data)
        created += 1

    logger.info(f"Seeded {created} attractions ({len(existing)} already present)")
    return created


async def seed_staff_account(db: AsyncSession) -> bool:
    """Create the configured staff account if it does not exist"""
    email = settings.SEED_STAFF_EMAIL
    password = settings.SEED_STAFF_PASSWORD
    if not email or not password:
        return False

    users = UserRepository(db)
    if await users.get_by_email(email) is not None:
        return False

    await users.create(email, await hash_password(password), role="staff")
    logger.info(f"Seeded staff account {email}")
    return True
