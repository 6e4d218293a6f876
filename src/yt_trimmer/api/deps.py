from __future__ import annotations

from fastapi import Request

from ..config import Settings
from ..services.pipeline import ClipPipeline


def get_pipeline(request: Request) -> ClipPipeline:
    return request.app.state.pipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
