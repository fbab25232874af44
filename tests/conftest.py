import httpx
import pytest

from helpers import ADMIN_KEY, WEBHOOK_SECRET, FakeGateway

from jojo_orders.config.settings import Settings
from jojo_orders.core.event_logger import DeadLetterLog
from jojo_orders.db import OrderStore, get_engine, get_session_factory, init_db
from jojo_orders.server.app import create_app
from jojo_orders.services.lifecycle import OrderLifecycle
from jojo_orders.services.reconciler import WebhookReconciler


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
async def store(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await init_db(engine)

    yield OrderStore(get_session_factory(engine))

    await engine.dispose()


@pytest.fixture()
def lifecycle(store, gateway):
    return OrderLifecycle(store, gateway)


@pytest.fixture()
def reconciler(lifecycle):
    return WebhookReconciler(lifecycle)


@pytest.fixture()
def dead_letters(tmp_path):
    return DeadLetterLog(tmp_path / "dead_letters")


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
        stripe_webhook_secret=WEBHOOK_SECRET,
        admin_api_key=ADMIN_KEY,
        dead_letter_dir=str(tmp_path / "dead_letters"),
    )


@pytest.fixture()
async def app(settings, gateway):
    app = create_app(settings, gateway=gateway)
    await init_db(app.state.engine)

    yield app

    await app.state.engine.dispose()


@pytest.fixture()
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
