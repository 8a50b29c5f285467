import argparse
import logging

import uvicorn

from storefront.config import settings
from storefront.db.sqlite import init_db
from storefront.services.auth import seed_admin_user
from storefront.services.catalog import seed_categories


def main() -> None:
    parser = argparse.ArgumentParser(description="Storefront API server")
    parser.add_argument("--seed", action="store_true", help="seed categories and the admin user before serving")
    parser.add_argument("--seed-only", action="store_true", help="seed and exit")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    init_db()

    if args.seed or args.seed_only:
        seed_categories()
        if settings.admin_password:
            seed_admin_user()
        else:
            logging.getLogger(__name__).warning("ADMIN_PASSWORD is empty, admin user not seeded")
        if args.seed_only:
            return

    uvicorn.run("storefront.web.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
