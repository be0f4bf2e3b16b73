"""ASGI entrypoint for the YogaAgeProof API."""

from yogaageproof.api.app import create_app
from yogaageproof.containers import build_container

app = create_app(build_container())
