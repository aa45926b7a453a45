"""Pytest configuration and fixtures for the process template tests"""

import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from flowtemplates.config import Settings
from flowtemplates.dependencies import (
    get_app_settings,
    get_db,
    get_environment_resolver,
    get_permission_checker,
)
from flowtemplates.main import app
from flowtemplates.models import Base, Project
from flowtemplates.schemas.operator import Operator
from flowtemplates.services.collaborators import InMemoryEnvironmentResolver, InMemoryPermissionChecker
from flowtemplates.services.template_service import TemplateService


# ==================== Database Fixtures ====================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """In-memory SQLite engine shared by every connection of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create a database session for testing"""
    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def projects(db_session):
    """Ids of two projects: templates are authored in ``source`` and imported into ``target``"""
    source = Project(name="source")
    target = Project(name="target")
    db_session.add_all([source, target])
    await db_session.commit()
    return {"source": source.id, "target": target.id}


# ==================== Operators ====================


@pytest.fixture
def owner():
    return Operator(id=1, name="alice")


@pytest.fixture
def other_user():
    return Operator(id=2, name="bob")


@pytest.fixture
def admin():
    return Operator(id=99, name="root", is_admin=True)


# ==================== Collaborators ====================


@pytest.fixture
def permission_checker():
    """alice holds resources 1-3; resource 4 exists but is granted to nobody"""
    return InMemoryPermissionChecker(grants={1: [1, 2, 3]}, existing=[1, 2, 3, 4])


@pytest.fixture
def environment_resolver():
    return InMemoryEnvironmentResolver(
        datasources={7: "orders_db", 8: "warehouse"},
        definitions={(10, 20): ("upstream", "daily_ingest")},
    )


@pytest.fixture
def test_settings():
    return Settings(MAX_IMPORT_NAME_ATTEMPTS=5, LOG_FORMAT="text")


@pytest.fixture
def template_service(db_session, permission_checker, environment_resolver, test_settings):
    return TemplateService(
        db_session,
        permission_checker=permission_checker,
        resolver=environment_resolver,
        settings=test_settings,
    )


# ==================== Payload Fixtures ====================


def _shell_task(name, pre_tasks=None, resources=None, script="echo hello"):
    return {
        "name": name,
        "type": "SHELL",
        "params": {
            "rawScript": script,
            "resourceList": [{"id": rid, "name": f"res_{rid}.sh"} for rid in resources or []],
        },
        "preTasks": pre_tasks or [],
    }


@pytest.fixture
def shell_task():
    """Builder of SHELL task node dicts"""
    return _shell_task


@pytest.fixture
def make_payload():
    """Builder of template payload JSON from task dicts"""

    def _make(tasks, global_params=None, tenant_id=1):
        return json.dumps({
            "tasks": tasks,
            "globalParams": global_params or [],
            "tenantId": tenant_id,
        })

    return _make


@pytest.fixture
def linear_payload(make_payload):
    """extract -> transform -> load"""
    return make_payload([
        _shell_task("extract", resources=[1]),
        _shell_task("transform", pre_tasks=["extract"], resources=[2]),
        _shell_task("load", pre_tasks=["transform"]),
    ])


# ==================== Test Client Fixtures ====================


@pytest_asyncio.fixture
async def test_client(db_session, permission_checker, environment_resolver, test_settings):
    """Create an async test client with dependency overrides"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_permission_checker] = lambda: permission_checker
    app.dependency_overrides[get_environment_resolver] = lambda: environment_resolver
    app.dependency_overrides[get_app_settings] = lambda: test_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
