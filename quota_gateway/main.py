import os

import uvicorn

from quota_gateway.core.app_factory import create_app

app = create_app()


def run() -> None:
    """Console entrypoint: serve the app with uvicorn."""
    uvicorn.run(
        "quota_gateway.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        log_config=None,
    )
