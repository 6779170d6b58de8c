import re

import httpx
import pytest

from petkoi.config import settings
from petkoi.database import create_tables
from petkoi.domain.admin import AdminRole
from petkoi.main import create_app
from petkoi.infrastructure.unit_of_work import UnitOfWork
from petkoi.application.admin_session import CreateAdminUseCase
from petkoi.application.catalog import AddProductUseCase

ADMIN_PASSWORD = "Str0ng-pass!"


class RecordingMailer:
    """Вместо Resend: складывает письма в список"""

    def __init__(self):
        self.sent = []

    async def send(self, to, subject, text, html=None):
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})

    def last_code(self) -> str:
        return re.search(r"code is (\d{6})", self.sent[-1]["text"]).group(1)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
async def app(tmp_path, mailer):
    app = create_app(database_url=f"sqlite+aiosqlite:///{tmp_path / 'petkoi_test.db'}", email_sender=mailer)
    await create_tables(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def uow(app):
    return UnitOfWork(app.state.session_factory)


@pytest.fixture
async def product(uow):
    return await AddProductUseCase(uow)("TAG-QR", "QR Pet Tag", 500)


@pytest.fixture
def create_admin(uow):
    async def _create(role=AdminRole.SUPER_ADMIN, email=None, password=ADMIN_PASSWORD):
        email = email or f"{role.value.lower()}@petkoi.test"
        return await CreateAdminUseCase(uow)(email, password, role)
    return _create


@pytest.fixture
def start_login(client):
    async def _start(email, password=ADMIN_PASSWORD) -> str:
        response = await client.post("/api/admin/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["otp_token"]
    return _start


@pytest.fixture
def login_as(client, mailer, create_admin, start_login):
    """Создает админа, проходит оба шага и возвращает заголовки с токеном"""

    async def _login(role=AdminRole.SUPER_ADMIN, email=None):
        admin = await create_admin(role, email)
        otp_token = await start_login(admin.email)
        response = await client.post(
            "/api/admin/login/verify", json={"otp_token": otp_token, "code": mailer.last_code()}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
def place_order(client, product):
    async def _place(user_id="user-1", quantity=1, **extra):
        payload = {"user_id": user_id, "items": [{"product_id": product.sku, "quantity": quantity}]}
        payload.update(extra)
        response = await client.post("/api/orders", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _place
