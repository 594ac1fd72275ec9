"""API tests for the workflow preview endpoints."""

from unittest import mock

import pytest

from core.exceptions import ValidationError

from conftest import FakeSession, png_bytes


def _files(light: bytes = b"light-bytes", dark: bytes = b"dark-bytes"):
    return {
        "lightModeImage": ("light.webp", light, "image/webp"),
        "darkModeImage": ("dark.webp", dark, "image/webp"),
    }


@pytest.mark.integration
class TestUploadPreview:

    async def test_upload_stores_both_images(self, client, local_backend):
        resp = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1"},
            files=_files(),
        )
        assert resp.status_code == 200
        body = resp.json()
        preview_id = body["previewId"]
        assert body["workflowId"] == "wf1"
        assert body["lightModeUrl"] == f"/api/v1/workflow-preview/files/wf1/{preview_id}-light.webp"
        assert body["darkModeUrl"] == f"/api/v1/workflow-preview/files/wf1/{preview_id}-dark.webp"
        assert isinstance(body["timestamp"], int)

        stored = local_backend.base_path / "wf1"
        assert (stored / f"{preview_id}-light.webp").read_bytes() == b"light-bytes"
        assert (stored / f"{preview_id}-dark.webp").read_bytes() == b"dark-bytes"

    async def test_png_format(self, client):
        resp = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1", "format": "png"},
            files=_files(),
        )
        assert resp.status_code == 200
        assert resp.json()["lightModeUrl"].endswith("-light.png")

    @pytest.mark.parametrize("missing", ["workflowId", "lightModeImage", "darkModeImage"])
    async def test_missing_fields_rejected_before_storage(self, client, preview_service, missing):
        data = {"workflowId": "wf1"}
        files = _files()
        if missing == "workflowId":
            data = {}
        else:
            files.pop(missing)

        with mock.patch.object(preview_service.uploader.backend, "put") as put:
            resp = await client.post("/api/v1/workflow-preview", data=data, files=files)

        assert resp.status_code == 400
        assert missing in resp.json()["detail"]
        put.assert_not_called()

    async def test_empty_image_rejected(self, client):
        resp = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1"},
            files=_files(light=b""),
        )
        assert resp.status_code == 400

    async def test_unknown_format_rejected(self, client):
        resp = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1", "format": "gif"},
            files=_files(),
        )
        assert resp.status_code == 400
        assert "Unsupported image format" in resp.json()["detail"]

    async def test_upload_failure_returns_500(self, client, local_backend):
        with mock.patch.object(local_backend, "_write", side_effect=PermissionError("read-only fs")):
            resp = await client.post(
                "/api/v1/workflow-preview",
                data={"workflowId": "wf1"},
                files=_files(),
            )
        assert resp.status_code == 500
        assert "request_id" in resp.json()


    @pytest.mark.parametrize("workflow_id", ["..", ".", "wf1/../other", "wf1\\evil"])
    async def test_unsafe_workflow_id_rejected_before_storage(self, client, preview_service, workflow_id):
        with mock.patch.object(preview_service.uploader.backend, "put") as put:
            resp = await client.post(
                "/api/v1/workflow-preview",
                data={"workflowId": workflow_id},
                files=_files(),
            )

        assert resp.status_code == 400
        assert "workflowId" in resp.json()["detail"]
        put.assert_not_called()

    async def test_oversized_image_rejected_before_storage(self, client, preview_service, test_settings):
        too_big = b"x" * (test_settings.PREVIEW_MAX_UPLOAD_BYTES + 1)
        with mock.patch.object(preview_service.uploader.backend, "put") as put:
            resp = await client.post(
                "/api/v1/workflow-preview",
                data={"workflowId": "wf1"},
                files=_files(dark=too_big),
            )

        assert resp.status_code == 400
        assert "darkModeImage" in resp.json()["detail"]
        put.assert_not_called()

    async def test_image_at_size_limit_accepted(self, client, test_settings):
        exact = b"x" * test_settings.PREVIEW_MAX_UPLOAD_BYTES
        resp = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1"},
            files=_files(light=exact),
        )
        assert resp.status_code == 200

    async def test_format_defaults_to_configured_format(self, client, test_settings):
        test_settings.PREVIEW_DEFAULT_FORMAT = "png"
        resp = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1"},
            files=_files(),
        )
        assert resp.status_code == 200
        assert resp.json()["darkModeUrl"].endswith("-dark.png")


@pytest.mark.integration
class TestDeletePreview:

    async def test_delete_removes_both_images(self, client, local_backend):
        created = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1"},
            files=_files(),
        )
        preview_id = created.json()["previewId"]

        resp = await client.delete(f"/api/v1/workflow-preview/wf1/{preview_id}")

        assert resp.status_code == 200
        assert resp.json() == {"workflowId": "wf1", "previewId": preview_id, "deleted": True}
        assert not (local_backend.base_path / "wf1" / f"{preview_id}-light.webp").exists()
        assert not (local_backend.base_path / "wf1" / f"{preview_id}-dark.webp").exists()

    async def test_delete_unknown_preview_succeeds(self, client):
        resp = await client.delete("/api/v1/workflow-preview/wf1/does-not-exist")
        assert resp.status_code == 200


    async def test_delete_uses_configured_format(self, client, local_backend, test_settings):
        test_settings.PREVIEW_DEFAULT_FORMAT = "png"
        created = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1"},
            files=_files(),
        )
        preview_id = created.json()["previewId"]

        resp = await client.delete(f"/api/v1/workflow-preview/wf1/{preview_id}")

        assert resp.status_code == 200
        assert not (local_backend.base_path / "wf1" / f"{preview_id}-light.png").exists()

    async def test_delete_rejects_unsafe_preview_id(self, preview_service):
        with mock.patch.object(preview_service.uploader.backend, "delete") as delete:
            with pytest.raises(ValidationError, match="previewId"):
                await preview_service.delete("wf1", "..")
        delete.assert_not_called()


@pytest.mark.integration
class TestServePreviewFile:

    async def test_serves_stored_image_with_long_cache(self, client):
        created = await client.post(
            "/api/v1/workflow-preview",
            data={"workflowId": "wf1"},
            files=_files(light=png_bytes()),
        )
        url = created.json()["lightModeUrl"]

        resp = await client.get(url)

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/webp"
        assert resp.headers["cache-control"] == "max-age=31536000"

    async def test_missing_file_404(self, client):
        resp = await client.get("/api/v1/workflow-preview/files/wf1/nothing.webp")
        assert resp.status_code == 404


@pytest.mark.integration
class TestCapturePreview:

    async def test_capture_renders_and_stores(self, client, local_backend):
        resp = await client.post(
            "/api/v1/workflow-preview/capture",
            json={"workflowId": "wf1", "url": "http://editor.test/w/wf1", "format": "png"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["lightModeUrl"].endswith("-light.png")

        session = FakeSession.instances[-1]
        assert session.url == "http://editor.test/w/wf1"
        assert session.kwargs["selector"] == ".react-flow"
        assert session.kwargs["scale"] == 1.5
        assert session.closed is True
        assert session.page.containers == {}

        stored = local_backend.base_path / "wf1" / f"{body['previewId']}-dark.png"
        assert stored.read_bytes().startswith(b"\x89PNG")

    async def test_capture_missing_element_404(self, client):
        resp = await client.post(
            "/api/v1/workflow-preview/capture",
            json={"workflowId": "wf1", "url": "http://editor.test/w/wf1", "selector": "#missing"},
        )
        assert resp.status_code == 404
        assert "#missing" in resp.json()["detail"]

    async def test_capture_rejects_non_http_url(self, client):
        resp = await client.post(
            "/api/v1/workflow-preview/capture",
            json={"workflowId": "wf1", "url": "file:///etc/passwd"},
        )
        assert resp.status_code == 400
        assert FakeSession.instances == []

    async def test_capture_invalid_options_400(self, client):
        resp = await client.post(
            "/api/v1/workflow-preview/capture",
            json={"workflowId": "wf1", "url": "http://editor.test", "quality": 0},
        )
        assert resp.status_code == 400
