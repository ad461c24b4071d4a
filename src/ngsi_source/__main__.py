# ngsi_source/__main__.py
from __future__ import annotations

import uvicorn

from ngsi_source.core.config import settings
from ngsi_source.main import create_app


def main() -> None:
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
