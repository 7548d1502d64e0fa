import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api import health
from app.api.v1.endpoints import artifacts, publish
from app.core.cache import cache_service
from app.core.config import settings
from app.core.exceptions import PublishError
from app.core.init_db import init_db
from app.core.metrics import APP_VERSION, PrometheusMiddleware, metrics_endpoint
from app.db.mongodb import close_mongo_connection, connect_to_mongo

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Continuous preview releases for pull requests and branches.

    ## Features
    * **Publish**: CI runs upload their built packages, verified against the declared SHA-1 checksums.
    * **Installable URLs**: Every commit, and the latest commit of every branch and pull request, is installable by URL.
    * **Templates**: Example projects are bundled into one-click StackBlitz previews.
    * **GitHub Reporting**: A check run per commit and a bot comment per pull request.

    """,
    version=APP_VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

app.add_middleware(PrometheusMiddleware)


@app.exception_handler(PublishError)
async def publish_error_handler(request: Request, exc: PublishError):
    if exc.status_code >= 500:
        logger.error(f"Publish failed: {exc.message}")
    else:
        logger.info(f"Publish rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def startup_event():
    await connect_to_mongo()
    await init_db()


@app.on_event("shutdown")
async def shutdown_event():
    await cache_service.close()
    await close_mongo_connection()


@app.get("/")
async def root():
    return {"message": "Welcome to the Continuous Releases API"}


app.add_route("/metrics", metrics_endpoint, include_in_schema=False)
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(publish.router, prefix=f"{settings.API_V1_STR}", tags=["publish"])
# Catch-all download routes go last
app.include_router(artifacts.router, tags=["artifacts"])
