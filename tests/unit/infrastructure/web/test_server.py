"""
Web trigger endpoint tests
==========================
Exercises the FastAPI app in-process over an ASGI transport.
"""
import io
import zipfile
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from genbatch.core.run_controller import RunController
from genbatch.core.services.batch_driver import BatchDriver
from genbatch.domain.models.job import BatchTally
from genbatch.infrastructure.filesystem.local_fs import LocalFileSystem
from genbatch.infrastructure.web.server import create_app


@pytest.fixture
def mock_driver():
    driver = MagicMock(spec=BatchDriver)
    driver.context = None
    driver.run.return_value = BatchTally()
    return driver


@pytest.fixture
def controller(mock_driver, downloads_dir):
    return RunController(lambda: mock_driver, LocalFileSystem(downloads_dir))


@pytest_asyncio.fixture
async def client(controller):
    """Async HTTP client for API testing."""
    transport = ASGITransport(app=create_app(controller))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestStatusEndpoint:

    @pytest.mark.asyncio
    async def test_idle_status(self, client):
        response = await client.get("/status")
        assert response.status_code == 200
        data = response.json()
        assert data["isRunning"] is False
        assert data["progress"]["total"] == 0
        assert data["downloadReady"] is False
        assert data["logs"] == []


class TestTriggerEndpoints:

    @pytest.mark.asyncio
    async def test_trigger_starts_run(self, client, controller, mock_driver):
        response = await client.get("/trigger")
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Batch run started"

        await controller.wait()
        mock_driver.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_trigger_while_running(self, client, controller, mocker):
        mocker.patch.object(RunController, "is_running", new_callable=mocker.PropertyMock, return_value=True)

        data = (await client.get("/trigger")).json()

        assert data["success"] is False
        assert data["message"] == "A batch run is already in progress"

    @pytest.mark.asyncio
    async def test_root_serves_status_page(self, client, controller):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Batch run started." in response.text
        await controller.wait()


class TestDownloadEndpoint:

    @pytest.mark.asyncio
    async def test_nothing_to_download(self, client):
        response = await client.get("/download")
        assert response.status_code == 404
        assert response.json() == {"error": "No files to download yet"}

    @pytest.mark.asyncio
    async def test_download_zip(self, client, downloads_dir):
        (downloads_dir / "rec1_1.png").write_bytes(b"one")
        (downloads_dir / "rec1_video.mp4").write_bytes(b"video")

        response = await client.get("/download")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert "attachment" in response.headers["content-disposition"]
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["rec1_1.png", "rec1_video.mp4"]
