import asyncio

import pytest
from sqlalchemy import update

from petkoi.database import build_engine, build_session_factory
from petkoi.domain.admin import AdminRole
from petkoi.infrastructure.db_schema import products_tbl
from petkoi.infrastructure.unit_of_work import UnitOfWork
from petkoi.presentation.cli import main, build_parser


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    return url


async def load(url, loader):
    engine = build_engine(url)
    try:
        async with UnitOfWork(build_session_factory(engine))() as uow:
            return await loader(uow)
    finally:
        await engine.dispose()


def test_create_admin_command(database_url):
    exit_code = main(["create-admin", "--email", "Root@PetKoi.test", "--password", "s3cret", "--role", "SUPER_ADMIN"])
    assert exit_code == 0

    admin = asyncio.run(load(database_url, lambda uow: uow.admins.get_by_email("root@petkoi.test")))
    assert admin.role == AdminRole.SUPER_ADMIN

    duplicate = main(["create-admin", "--email", "root@petkoi.test", "--password", "x", "--role", "HEALTH"])
    assert duplicate == 1


def test_add_product_command(database_url):
    assert main(["add-product", "--sku", "TAG-NFC", "--name", "NFC Tag", "--price", "750"]) == 0
    assert main(["add-product", "--sku", "TAG-NFC", "--name", "NFC Tag", "--price", "750"]) == 1

    products = asyncio.run(load(database_url, lambda uow: uow.products.list_active()))
    assert [(p.sku, p.price_bdt) for p in products] == [("TAG-NFC", 750)]


def test_unknown_role_is_rejected_by_parser():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["create-admin", "--email", "a@b.c", "--password", "x", "--role", "JANITOR"])


async def deactivate(url, sku):
    engine = build_engine(url)
    try:
        async with engine.begin() as conn:
            await conn.execute(update(products_tbl).where(products_tbl.c.sku == sku).values(active=False))
    finally:
        await engine.dispose()


def test_add_product_with_sku_of_inactive_product(database_url):
    assert main(["add-product", "--sku", "TAG-OLD", "--name", "Old Tag", "--price", "300"]) == 0
    asyncio.run(deactivate(database_url, "TAG-OLD"))

    assert main(["add-product", "--sku", "TAG-OLD", "--name", "Old Tag v2", "--price", "350"]) == 1

    products = asyncio.run(load(database_url, lambda uow: uow.products.list_active()))
    assert products == []
