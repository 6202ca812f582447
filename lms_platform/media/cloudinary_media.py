"""Cloudinary media store for avatars, course thumbnails and lecture videos."""

from __future__ import annotations

from typing import Any, BinaryIO, Dict

from lms_platform.config import Config
from lms_platform.errors import UpstreamServiceError


# Square face-cropped avatars
AVATAR_OPTIONS: Dict[str, Any] = {"width": 250, "height": 250, "gravity": "faces", "crop": "fill"}


def _debug(msg: str) -> None:
    print(f"[media] {msg}")


class MediaStore:
    def __init__(self, cfg: Config):
        self._cloud_name = cfg.CLOUDINARY_CLOUD_NAME
        self._api_key = cfg.CLOUDINARY_API_KEY
        self._api_secret = cfg.CLOUDINARY_API_SECRET
        self.folder = cfg.CLOUDINARY_FOLDER
        self._configured = False

    @property
    def enabled(self) -> bool:
        return bool(self._cloud_name and self._api_key and self._api_secret)

    def _uploader(self) -> Any:
        if not self.enabled:
            raise UpstreamServiceError("Media storage is not configured")
        try:
            import cloudinary  # type: ignore
            import cloudinary.uploader  # type: ignore
        except Exception as e:
            raise UpstreamServiceError(
                "Cloudinary selected but the 'cloudinary' package is not installed."
            ) from e
        if not self._configured:
            cloudinary.config(
                cloud_name=self._cloud_name,
                api_key=self._api_key,
                api_secret=self._api_secret,
                secure=True,  # Always use HTTPS
            )
            self._configured = True
        return cloudinary.uploader

    def upload(self, file: BinaryIO | str, *, resource_type: str = "image", **options: Any) -> Dict[str, str]:
        """Upload a file object or path. Returns {public_id, secure_url}."""
        uploader = self._uploader()
        try:
            result = uploader.upload(file, folder=self.folder, resource_type=resource_type, **options)
        except Exception as e:
            _debug(f"upload failed: {e}")
            raise UpstreamServiceError("File can not get uploaded") from e

        public_id = str(result.get("public_id") or "")
        secure_url = str(result.get("secure_url") or result.get("url") or "")
        if not public_id or not secure_url:
            raise UpstreamServiceError("File can not get uploaded")
        return {"public_id": public_id, "secure_url": secure_url}

    def destroy(self, public_id: str, *, resource_type: str = "image") -> None:
        if not public_id:
            return
        uploader = self._uploader()
        try:
            uploader.destroy(public_id, resource_type=resource_type)
        except Exception as e:
            _debug(f"destroy failed for {public_id}: {e}")
            raise UpstreamServiceError("File can not get removed") from e
