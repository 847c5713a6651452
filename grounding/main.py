from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from grounding.observability import CorrelationContext, setup_logging
from grounding.routers.categories import router as categories_router
from grounding.routers.ops import router as ops_router
from grounding.routers.retrieval import router as retrieval_router
from grounding.settings import settings


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.add_middleware(CorrelationContext)

    origins = [origin.strip() for origin in settings.frontend_allowed_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[settings.correlation_id_header],
    )

    for router in (ops_router, retrieval_router, categories_router):
        app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.app_port)
