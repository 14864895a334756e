"""
Integration tests for the London Zoo platform
Tests end-to-end flows across the access gate, queue store and registry
"""
import pytest
from unittest.mock import patch
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select

from app import app
from db.models import Attraction, QueueStatus, User
from db.repositories import QueueRepository
from db.seed import ZOO_ATTRACTIONS, seed_attractions, seed_staff_account

from conftest import PASSWORD


class TestQueueFlow:
    """Visitors join, staff correct, everyone reads the same state"""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_penguin_pool_scenario(self, test_client, visitor_client, staff_client, seed_attractions):
        pool = seed_attractions["Penguin Pool"]

        for expected_length in (1, 2, 3):
            response = await visitor_client.post(f"/queue/{pool.id}/join")
            assert response.status_code == 200
            assert response.json()['queue_length'] == expected_length

        state = (await test_client.get(f"/queue/{pool.id}")).json()
        assert state['queue_length'] == 3
        assert state['estimated_wait_minutes'] == 15

        # Staff correction is stored verbatim, not re-derived
        override = await staff_client.patch(
            f"/queue/{pool.id}", json={"queue_length": 10, "estimated_wait_minutes": 3}
        )
        assert override.status_code == 200

        state = (await test_client.get(f"/queue/{pool.id}")).json()
        assert state['queue_length'] == 10
        assert state['estimated_wait_minutes'] == 3

        attraction = (await test_client.get(f"/attractions/{pool.id}")).json()
        assert attraction['queue_length'] == 10
        assert attraction['estimated_wait_minutes'] == 3

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_failed_join_mutates_nothing(self, test_client, visitor_client, seed_attractions):
        before = (await test_client.get("/queue")).json()

        response = await visitor_client.post("/queue/999/join")
        anonymous = await test_client.post(f"/queue/{seed_attractions['Penguin Pool'].id}/join")

        assert response.status_code == 404
        assert anonymous.status_code == 401
        assert (await test_client.get("/queue")).json() == before

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_staff_can_join(self, staff_client, seed_attractions):
        pool = seed_attractions["Penguin Pool"]

        response = await staff_client.post(f"/queue/{pool.id}/join")

        assert response.status_code == 200
        assert response.json()['queue_length'] == 1

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_joins_only_touch_their_attraction(self, visitor_client, test_db_session, seed_attractions):
        pool = seed_attractions["Penguin Pool"]
        savanna = seed_attractions["African Savanna"]

        for _ in range(5):
            await visitor_client.post(f"/queue/{pool.id}/join")

        repo = QueueRepository(test_db_session)
        assert (await repo.get_status(pool.id)).queue_length == 5
        assert (await repo.get_status(savanna.id)).queue_length == 0


class TestAccountFlow:
    """Register, log out, log back in"""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_register_logout_login(self, test_client, seed_attractions):
        email = "keeper.fan@example.com"

        registered = await test_client.post("/auth/register", json={"email": email, "password": PASSWORD})
        assert registered.status_code == 201

        joined = await test_client.post(f"/queue/{seed_attractions['Penguin Pool'].id}/join")
        assert joined.status_code == 200

        await test_client.post("/auth/logout")
        assert (await test_client.get("/auth/status")).json()['isAuthenticated'] is False

        login = await test_client.post("/auth/login", json={"email": email, "password": PASSWORD})
        assert login.status_code == 200
        assert login.json()['user']['id'] == registered.json()['user']['id']
        assert (await test_client.get("/auth/status")).json()['isAuthenticated'] is True

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_sessions_are_independent(self, visitor_client, test_db_session, visitor_user):
        """Logging out one client leaves another login of the same user alive"""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as other:
            await other.post("/auth/login", json={"email": visitor_user.email, "password": PASSWORD})

            await visitor_client.post("/auth/logout")

            assert (await other.get("/auth/status")).json()['isAuthenticated'] is True
            assert (await visitor_client.get("/auth/status")).json()['isAuthenticated'] is False


class TestSeedData:
    """Tests for startup reference data"""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_seed_attractions_is_idempotent(self, test_db_session):
        first = await seed_attractions(test_db_session)
        second = await seed_attractions(test_db_session)

        assert first == len(ZOO_ATTRACTIONS)
        assert second == 0

        attractions = await test_db_session.scalar(select(func.count()).select_from(Attraction))
        queues = await test_db_session.scalar(select(func.count()).select_from(QueueStatus))
        assert attractions == len(ZOO_ATTRACTIONS)
        assert queues == len(ZOO_ATTRACTIONS)

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_seed_staff_account(self, test_db_session):
        with patch("db.seed.settings") as mock_settings:
            mock_settings.SEED_STAFF_EMAIL = "ops@londonzoo.co.uk"
            mock_settings.SEED_STAFF_PASSWORD = PASSWORD

            assert await seed_staff_account(test_db_session) is True
            assert await seed_staff_account(test_db_session) is False

        role = await test_db_session.scalar(
            select(User.role).where(User.email == "ops@londonzoo.co.uk")
        )
        assert role == "staff"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_seed_staff_account_not_configured(self, test_db_session):
        with patch("db.seed.settings") as mock_settings:
            mock_settings.SEED_STAFF_EMAIL = None
            mock_settings.SEED_STAFF_PASSWORD = None

            assert await seed_staff_account(test_db_session) is False
