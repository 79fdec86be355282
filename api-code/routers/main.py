from __future__ import annotations

from html import escape
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from models import User


SHELL_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <title>Federalist</title>
    <link rel="stylesheet" href="/styles/styles.css">
  </head>
  <body>
    <div id="js-app" data-username="{username}"></div>
    <script src="/js/bundle.js"></script>
  </body>
</html>
"""

LANDING_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <title>Federalist</title>
  </head>
  <body>
    <main>
      <h1>Federalist</h1>
      <p>Publish static sites straight from GitHub.</p>
      <a href="/auth/github">Log in with GitHub</a>
    </main>
  </body>
</html>
"""


def build_main_router(optional_user_dependency) -> APIRouter:
    """HTML shell for the single-page frontend; the bundle itself is served separately."""
    router = APIRouter(include_in_schema=False)

    @router.get("/", response_class=HTMLResponse)
    async def home(user: Optional[User] = Depends(optional_user_dependency)) -> HTMLResponse:
        if user:
            return HTMLResponse(SHELL_TEMPLATE.format(username=escape(user.username)))
        return HTMLResponse(LANDING_TEMPLATE)

    @router.get("/sites", response_class=HTMLResponse)
    @router.get("/sites/{path:path}", response_class=HTMLResponse)
    async def app_shell(
        path: str = "", user: Optional[User] = Depends(optional_user_dependency)
    ) -> HTMLResponse:
        if not user:
            return HTMLResponse(LANDING_TEMPLATE, status_code=403)
        return HTMLResponse(SHELL_TEMPLATE.format(username=escape(user.username)))

    return router
