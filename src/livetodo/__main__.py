"""Entry point: python -m livetodo"""

import asyncio

from livetodo.cli import create_app


def main():
    app = create_app()
    asyncio.run(app.run())


if __name__ == "__main__":
    main()
