"""callsign_directory.web

HTTP surface:
  GET  /          search form
  GET  /lookup    callsign lookup as HTML, JSON or JSONP
  GET  /update    upload form (authenticated)
  POST /update    full-replace roster import, streamed as an HTML report
  GET  /health    liveness probe
"""

from __future__ import annotations

import html
import io
import logging
from contextlib import asynccontextmanager
from typing import Iterator

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from callsign_directory.auth import Authenticator, HeaderAuthenticator
from callsign_directory.config import AppConfig
from callsign_directory.import_members import EVENT_SUMMARY, ImportRun, MemberImporter
from callsign_directory.lookup import ROOT_PAGE, InvalidCallbackError, respond
from callsign_directory.shared import ImportAbortedError, StoreError
from callsign_directory.store import InMemoryMemberStore, MemberStore, PostgresMemberStore

log = logging.getLogger(__name__)

UPDATE_PAGE = """<html>
  <body>
    <form enctype="multipart/form-data" method="post">
      <p>Hello, {user}!</p>
      <p>Upload a new CSV file with callsigns.
      This will erase all data in favor of the new file.</p>
      <div><input type="file" name="csvfile"></div>
      <div><input type="submit" value="Update"></div>
    </form>
  </body>
</html>
"""

ERROR_PAGE = """<html>
  <body>
    <div>Internal error: {message}</div>
  </body>
</html>
"""


def _render_report(run: ImportRun) -> Iterator[str]:
    """Stream an import as HTML, one <div> per event.

    A fatal error mid-run truncates the report with an error line; writes
    already applied are kept.
    """
    yield "<html><body>\n"
    try:
        for event in run.events():
            css = event.kind if event.kind != EVENT_SUMMARY else "summary"
            yield f'<div class="{css}">{html.escape(event.message)}</div>\n'
    except ImportAbortedError as exc:
        log.error("import aborted: %s", exc)
        yield f'<div class="error">Error: {html.escape(str(exc))}</div>\n'
        yield "</body></html>\n"
        return

    duplicates = run.result.duplicates
    if duplicates:
        yield f"<div>Found {len(duplicates)} duplicates:<ul>"
        for callsign in duplicates:
            yield f"<li>{html.escape(callsign)}</li>"
        yield "</ul></div>\n"
    yield "</body></html>\n"


def create_app(
    store: MemberStore | None = None,
    config: AppConfig | None = None,
    authenticator: Authenticator | None = None,
) -> FastAPI:
    """Build the application.

    Without an explicit store, CALLSIGN_DB_DSN selects PostgreSQL; if it is
    unset the app runs on an in-memory store.
    """
    config = config or AppConfig.from_env()
    owned_store: PostgresMemberStore | None = None
    if store is None:
        if config.db_dsn:
            owned_store = PostgresMemberStore.connect(config.db_dsn, max_size=config.db_pool_size)
            store = owned_store
        else:
            log.warning("CALLSIGN_DB_DSN not set; using an in-memory member store")
            store = InMemoryMemberStore()
    authenticator = authenticator or HeaderAuthenticator(
        header=config.auth_header, login_path=config.login_url,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owned_store is not None:
            owned_store.close()

    app = FastAPI(title="Callsign Directory", lifespan=lifespan)
    app.state.store = store
    app.state.config = config

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        log.error("store error on %s: %s", request.url.path, exc)
        return HTMLResponse(ERROR_PAGE.format(message="store unavailable"), status_code=500)

    @app.get("/", response_class=HTMLResponse)
    def root():
        return HTMLResponse(ROOT_PAGE)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/lookup")
    def lookup(
        callsign: str = Query("", description="Callsign to look up (case-insensitive)"),
        format: str = Query("html", description="html or json"),
        jsonp: str | None = Query(None, description="JSONP callback name"),
        callback: str | None = Query(None, description="Alias of jsonp"),
    ):
        try:
            result = respond(store, callsign, format, jsonp or callback)
        except InvalidCallbackError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return Response(
            content=result.body,
            media_type=result.media_type,
            headers={"X-Member-Found": "true" if result.found else "false"},
        )

    @app.api_route("/update", methods=["GET", "POST"])
    async def update(request: Request):
        user = authenticator.current_user(request)
        if user is None:
            return RedirectResponse(authenticator.login_url(str(request.url)), status_code=302)

        form_page = HTMLResponse(UPDATE_PAGE.format(user=html.escape(user)))
        if request.method != "POST":
            return form_page

        try:
            form = await request.form()
        except StarletteHTTPException as exc:
            log.error("unreadable upload form: %s", exc.detail)
            return HTMLResponse(ERROR_PAGE.format(message="malformed upload"), status_code=500)
        upload = form.get("csvfile")
        if not isinstance(upload, UploadFile) or not upload.filename:
            return form_page

        log.info("user %s uploading %s", user, upload.filename)
        # Starlette has spooled the part to disk; rows are decoded as they are read.
        lines = io.TextIOWrapper(upload.file, encoding="utf-8-sig", newline="")
        importer = MemberImporter(store, writers=config.writers, queue_size=config.queue_size)
        try:
            run = await run_in_threadpool(importer.prepare, lines)
        except ImportAbortedError as exc:
            log.error("import of %s aborted: %s", upload.filename, exc)
            return HTMLResponse(ERROR_PAGE.format(message=html.escape(str(exc))), status_code=500)
        return StreamingResponse(_render_report(run), media_type="text/html; charset=utf-8")

    return app
