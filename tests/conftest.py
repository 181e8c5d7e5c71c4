import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coincatalog.db.database import get_session
from coincatalog.main import app
from coincatalog.models.catalog import CatalogCoin, Country, Period, Ruler
from coincatalog.models.db import Base
from coincatalog.services.catalog_data import CatalogData
from coincatalog.storage.memory import MemoryStorage
from coincatalog.storage.sql import SqlStorage


@pytest.fixture
def catalog() -> CatalogData:
    """Small catalog: two rulers, coin_42 is a silver rouble worth 100-200."""
    return CatalogData(
        countries=(Country(id="russia", name="Россия", name_en="Russia"),),
        periods=(
            Period(id="empire", country_id="russia", name="Российская империя", sort_order=1),
        ),
        rulers=(
            Ruler(id="peter_i", name="Пётр I", period_id="empire", name_en="Peter I", sort_order=1),
            Ruler(
                id="nicholas_ii",
                name="Николай II",
                period_id="empire",
                name_en="Nicholas II",
                sort_order=2,
            ),
        ),
        coins=(
            CatalogCoin(
                id="coin_42",
                ruler_id="nicholas_ii",
                name="1 рубль 1897",
                name_en="1 Rouble 1897",
                catalog_number="Бит. 42",
                year=1897,
                denomination_value=1.0,
                metal="серебро",
                estimated_value_min=100,
                estimated_value_max=200,
            ),
            CatalogCoin(
                id="coin_43",
                ruler_id="nicholas_ii",
                name="15 рублей 1897",
                name_en="15 Roubles 1897",
                year=1897,
                denomination_value=15.0,
                metal="золото",
                estimated_value_min=1000,
                estimated_value_max=1400,
            ),
            CatalogCoin(
                id="coin_44",
                ruler_id="nicholas_ii",
                name="10 копеек 1898",
                name_en="10 Kopecks 1898",
                year=1898,
                denomination_value=0.1,
                metal="silver",
            ),
            CatalogCoin(
                id="coin_45",
                ruler_id="peter_i",
                name="1 копейка 1713",
                name_en="1 Kopeck 1713",
                year=1713,
                denomination_value=0.01,
                metal="медь",
                estimated_value_min=3000,
            ),
        ),
    )


@pytest.fixture(params=["sql", "memory"])
async def storage(request: pytest.FixtureRequest, catalog: CatalogData):
    """Each storage adapter, initialised over the test catalog."""
    if request.param == "sql":
        store = SqlStorage(catalog, database_url="sqlite+aiosqlite:///:memory:")
    else:
        store = MemoryStorage(catalog)
    await store.initialize()
    yield store
    await store.close()


# --- Remote collection service ---


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for the server."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def server_transport(async_engine):
    """ASGI transport into the FastAPI app with overridden database session."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_session():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    yield ASGITransport(app=app)
    app.dependency_overrides.clear()


@pytest.fixture
async def client(server_transport: ASGITransport):
    """Provide an async test client for the server."""
    async with AsyncClient(transport=server_transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def registered(client: AsyncClient) -> dict:
    """Register a@example.com and return the auth response body."""
    response = await client.post(
        "/auth/register",
        json={"email": "a@example.com", "password": "secret-pass", "name": "A"},
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def auth_headers(registered: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {registered['token']}"}


class SwitchableTransport(httpx.AsyncBaseTransport):
    """Wraps a transport; while offline every request fails to connect."""

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.online = True

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if not self.online:
            raise httpx.ConnectError("network unreachable", request=request)
        return await self.inner.handle_async_request(request)


@pytest.fixture
def switchable_transport(server_transport: ASGITransport) -> SwitchableTransport:
    return SwitchableTransport(server_transport)
