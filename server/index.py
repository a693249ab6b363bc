from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from tdrs.config import configure_logging, load_engine_config
from tdrs.engines import SocialEngine

from .src.social.routes import build_social_router


def create_app(engine: Optional[SocialEngine] = None) -> FastAPI:
    if engine is None:
        config = load_engine_config()
        configure_logging(config.log_level)
        engine = SocialEngine.from_config(config)
    app = FastAPI(title="Social Relationship Engine API", version="0.1.0")

    app.include_router(build_social_router(engine))

    @app.get("/health", tags=["system"])
    def health() -> dict:
        return {
            "status": "ok",
            "tick": engine.tick_count,
            "traits": len(engine.traits),
            "entities": engine.graph.entity_count(),
        }

    return app


app = create_app()


__all__ = ["app", "create_app"]
