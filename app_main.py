from __future__ import annotations

import logging
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


PROJECT_ROOT = Path(__file__).resolve().parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from db.mongo import close_mongo_client  # noqa: E402
from env_loader import load_local_env  # noqa: E402
from jobs import (  # noqa: E402
    DailyScheduler,
    audit_all_sites,
    audit_federalist_users,
    queue_nightly_builds,
    verify_repositories,
)
from repositories import FederalistRepository, InMemoryFederalistRepository  # noqa: E402
from routers import (  # noqa: E402
    build_auth_router,
    build_build_router,
    build_health_router,
    build_main_router,
    build_site_router,
    build_user_router,
    build_webhook_router,
)
from services import (  # noqa: E402
    AuthService,
    BuildQueue,
    BuildService,
    BuildStatusReporter,
    CloudFoundryClient,
    EventService,
    GitHubClient,
    ProxyDataSync,
    S3SiteRemover,
    SiteService,
    UserService,
    WebhookService,
)
from settings import get_settings  # noqa: E402


load_local_env()
settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("federalist")

app = FastAPI(
    title="Federalist API",
    version="0.1.0",
    description="Builds and publishes static sites from GitHub repositories.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_hostname],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

repository: FederalistRepository | InMemoryFederalistRepository = FederalistRepository()
github = GitHubClient(settings)
events = EventService(repository)
status_reporter = BuildStatusReporter(repository, github, settings)
build_service = BuildService(
    repository,
    github=github,
    queue=BuildQueue(settings),
    status_reporter=status_reporter,
    events=events,
)
site_service = SiteService(
    repository,
    settings,
    github=github,
    builds=build_service,
    remover=S3SiteRemover(settings, cf_client=CloudFoundryClient(settings)),
    proxy=ProxyDataSync(settings),
    events=events,
)
user_service = UserService(repository, sites=site_service)
webhook_service = WebhookService(repository, settings, builds=build_service, events=events)
auth_service = AuthService(settings, repository, github=github, events=events)
auth_dependency = auth_service.build_auth_dependency()

repository_consumers = (
    events,
    status_reporter,
    build_service,
    site_service,
    user_service,
    webhook_service,
    auth_service,
)

scheduler = DailyScheduler()

app.include_router(build_main_router(auth_service.build_optional_user_dependency()))
app.include_router(build_auth_router(auth_service))
app.include_router(build_webhook_router(webhook_service))
app.include_router(build_site_router(site_service, user_service, auth_dependency))
app.include_router(build_build_router(build_service, auth_dependency))
app.include_router(build_user_router(user_service, auth_dependency))
app.include_router(build_health_router(build_service))


def register_jobs() -> None:
    async def nightly_builds() -> int:
        return await queue_nightly_builds(build_service.repository, build_service)

    async def verify_repos() -> int:
        return await verify_repositories(build_service.repository, github)

    async def audit_sites() -> int:
        return await audit_all_sites(
            build_service.repository, github, events, settings.federalist_users_admin
        )

    async def audit_users() -> list:
        return await audit_federalist_users(build_service.repository, github, settings)

    if settings.is_production:
        scheduler.add("nightly builds", 0, 0, nightly_builds)
    scheduler.add("verify repositories", 0, 10, verify_repos)
    scheduler.add("audit site users", 0, 15, audit_sites)
    if settings.is_production:
        scheduler.add("audit federalist-users", 0, 20, audit_users)


@app.on_event("startup")
async def on_startup() -> None:
    global repository  # pylint: disable=global-statement
    try:
        await repository.ensure_indexes()
        logger.info("MongoDB repository initialized successfully.")
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning(
            "MongoDB unavailable (%s); falling back to in-memory repository.", exc
        )
        repository = InMemoryFederalistRepository()
        for consumer in repository_consumers:
            consumer.repository = repository  # type: ignore[assignment]

    if settings.runs_scheduled_jobs:
        register_jobs()
        scheduler.start()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await scheduler.stop()
    close_mongo_client()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app_main:app", host="0.0.0.0", port=1337, reload=True)
