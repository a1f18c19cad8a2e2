"""
Web trigger surface
===================
Starts batch runs and reports their status over HTTP, and serves the
downloaded artifacts as a zip archive.
"""

import html
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse

from genbatch import __version__
from genbatch.core.run_controller import RunController

logger = logging.getLogger(__name__)

router = APIRouter()


def get_controller(request: Request) -> RunController:
    return request.app.state.controller


def _status_page(status: dict, started: bool) -> str:
    progress = status["progress"]
    banner = "Batch run started." if started else (
        "A batch run is in progress." if status["isRunning"] else "Idle."
    )
    error = f'<p class="error">Last run failed: {html.escape(status["error"])}</p>' if status["error"] else ""
    logs = "".join(
        f"<li>[{html.escape(line['time'])}] {html.escape(line['level'])} {html.escape(line['message'])}</li>"
        for line in status["logs"]
    )
    download = '<a href="/download">Download all files (zip)</a>' if status["downloadReady"] else ""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>genbatch</title>
        <meta charset="utf-8">
        <meta http-equiv="refresh" content="5">
        <style>
            body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                   background: #0a0a0a; color: #e0e0e0; padding: 20px; }}
            .error {{ color: #ff6b6b; }}
            progress {{ width: 400px; }}
        </style>
    </head>
    <body>
        <h1>Batch generation</h1>
        <p>{banner}</p>
        <progress value="{progress['percentage']}" max="100"></progress>
        <p>{progress['processed']}/{progress['total']} processed ({progress['percentage']}%),
           {progress['success']} succeeded, {progress['failed']} failed, {status['elapsed']}s elapsed</p>
        <p>Current job: {html.escape(status['currentJob'] or '-')}</p>
        {error}
        {download}
        <ul>{logs}</ul>
    </body>
    </html>
    """


@router.get("/", response_class=HTMLResponse)
async def root(controller: RunController = Depends(get_controller)):
    """Starts a run if none is in progress and shows the status page."""
    started = controller.start()
    return _status_page(controller.status(), started)


@router.get("/trigger")
async def trigger(controller: RunController = Depends(get_controller)):
    started = controller.start()
    return {
        "success": started,
        "message": "Batch run started" if started else "A batch run is already in progress",
        "status": controller.status(),
    }


@router.get("/status")
async def status(controller: RunController = Depends(get_controller)):
    return controller.status()


@router.get("/download")
async def download(background_tasks: BackgroundTasks, controller: RunController = Depends(get_controller)):
    """Zips every downloaded artifact and streams the archive."""
    fd, name = tempfile.mkstemp(suffix=".zip", prefix="genbatch-")
    os.close(fd)
    archive = Path(name)
    try:
        count = await controller.bundle(archive)
    except FileNotFoundError:
        archive.unlink(missing_ok=True)
        return JSONResponse(status_code=404, content={"error": "No files to download yet"})

    logger.info(f"Serving archive with {count} files")
    background_tasks.add_task(archive.unlink, missing_ok=True)
    filename = f"genbatch-{datetime.now().strftime('%Y%m%d-%H%M%S')}.zip"
    return FileResponse(archive, media_type="application/zip", filename=filename, background=background_tasks)


def create_app(controller: RunController) -> FastAPI:
    app = FastAPI(title="genbatch", version=__version__)
    app.state.controller = controller
    app.include_router(router)
    return app
