"""ASGI entrypoint: ``uvicorn fabric_muse.api.asgi:app``."""

from fabric_muse.api.app import create_app
from fabric_muse.config import Settings
from fabric_muse.containers import build_container

settings = Settings()
app = create_app(build_container(settings))
