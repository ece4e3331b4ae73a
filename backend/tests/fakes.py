"""Test doubles shared across the suite."""

from __future__ import annotations

from mediasync.services.google_drive import DriveFile


class FakeDriveClient:
    """Stands in for GoogleDriveClient with a fixed folder listing."""

    def __init__(self, files: list[DriveFile] | None = None, error: Exception | None = None):
        self.files = files or []
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def list_folder(self, access_token: str, folder_id: str) -> list[DriveFile]:
        self.calls.append((access_token, folder_id))
        if self.error is not None:
            raise self.error
        return list(self.files)


async def fake_token_refresher(refresh_token: str, client_id: str, client_secret: str) -> str:
    """Token exchange that always succeeds."""
    return f"access-for-{refresh_token}"


def drive_file(file_id: str, mime_type: str, size: str | None = None, **extra) -> DriveFile:
    """Build a DriveFile the way the Drive API reports it."""
    data = {"id": file_id, "name": extra.pop("name", f"{file_id}.bin"), "mimeType": mime_type}
    if size is not None:
        data["size"] = size
    data.update(extra)
    return DriveFile.model_validate(data)
