import argparse
import asyncio
import logging
import sys

from petkoi.config import settings
from petkoi.database import build_engine, build_session_factory, create_tables
from petkoi.domain.admin import AdminRole
from petkoi.domain.exceptions import DomainException
from petkoi.infrastructure.unit_of_work import UnitOfWork
from petkoi.application.admin_session import CreateAdminUseCase
from petkoi.application.catalog import AddProductUseCase

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="petkoi", description="Служебные команды Pet Koi")
    commands = parser.add_subparsers(dest="command", required=True)

    create_admin = commands.add_parser("create-admin", help="Создать админа")
    create_admin.add_argument("--email", required=True)
    create_admin.add_argument("--password", required=True)
    create_admin.add_argument("--role", required=True, choices=[role.value for role in AdminRole])

    add_product = commands.add_parser("add-product", help="Добавить товар")
    add_product.add_argument("--sku", required=True)
    add_product.add_argument("--name", required=True)
    add_product.add_argument("--price", required=True, type=int, help="Цена в BDT")

    return parser


async def run(args: argparse.Namespace, database_url: str) -> None:
    engine = build_engine(database_url)
    try:
        await create_tables(engine)
        uow = UnitOfWork(build_session_factory(engine))

        if args.command == "create-admin":
            admin = await CreateAdminUseCase(uow)(args.email, args.password, AdminRole(args.role))
            print(f"Admin {admin.email} created ({admin.role.value})")
        elif args.command == "add-product":
            product = await AddProductUseCase(uow)(args.sku, args.name, args.price)
            print(f"Product {product.sku} created ({product.price_bdt} BDT)")
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(run(args, settings.DATABASE_URL))
    except DomainException as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
