import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from edu.rit.csh.pings.app.config import Settings
from edu.rit.csh.pings.model.database import (
    DatabaseUnavailable,
    check_database,
    create_database_engine,
)

logger = logging.getLogger(__name__)


async def checkDb() -> int:
    try:
        settings = Settings()  # type: ignore
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    engine = create_database_engine(str(settings.database_url), 1)
    try:
        await check_database(engine)
    except DatabaseUnavailable as e:
        print(str(e), file=sys.stderr)
        return 1
    finally:
        await engine.dispose()

    print("Database OK")
    return 0


async def realMain() -> int:
    parser = argparse.ArgumentParser(prog="pings-util", description="Pings utilities")

    subparsers = parser.add_subparsers(dest="command", required=True)

    _ = subparsers.add_parser(
        "check-db", help="Check that DATABASE_URL is reachable"
    )

    args = vars(parser.parse_args())
    command = args.get("command", None)

    if command == "check-db":
        return await checkDb()
    return 0


def main() -> None:
    sys.exit(asyncio.run(realMain()))


if __name__ == "__main__":
    main()
