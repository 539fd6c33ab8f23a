import asyncio
import sys

from loguru import logger

from pterocli.cli import PteroCmdlineApp


def main() -> None:
    app = PteroCmdlineApp()

    try:
        asyncio.run(app.runall())
    except KeyboardInterrupt:
        app.stop()
        logger.warning("Interrupted, exiting.")
        sys.exit(130)


if __name__ == "__main__":
    main()
