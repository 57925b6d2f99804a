"""HTTP client for the FaceCheck.ID API."""
import logging
from pathlib import Path

import requests

from facecheck.exceptions import APIError, FileError, TransportError
from facecheck.utils.config_loader import Settings
from facecheck.utils.image_utils import image_mime_type, sniff_image

logger = logging.getLogger(__name__)


def build_search_payload(
    id_search: str, with_progress: bool = False, demo: bool = False,
    shady_only: bool = False, status_only: bool = False
) -> dict:
    """Search request body with only the flags that are set."""
    payload = {"id_search": id_search}
    flags = {
        "with_progress": with_progress,
        "demo": demo,
        "shady_only": shady_only,
        "status_only": status_only,
    }
    payload.update({k: True for k, v in flags.items() if v})
    return payload


class FaceCheckClient:
    """Thin wrapper around the FaceCheck.ID REST API.

    Every call returns the decoded JSON object. A response carrying a
    non-empty ``error`` raises APIError; anything else that goes wrong on
    the wire raises TransportError. Nothing is retried.
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.base_url = settings.base_url.rstrip("/")
        self.timeout = settings.timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "accept": "application/json",
            "Authorization": settings.token,
        })

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        self.session.close()

    def request(self, method: str, path: str, **kwargs) -> dict:
        """Send request and return decoded JSON body."""
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {path}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {path} -> HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON from {path} (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e

        if isinstance(data, dict) and data.get("error"):
            raise APIError(str(data["error"]), code=data.get("code"))
        if not response.ok:
            raise TransportError(
                f"HTTP {response.status_code} from {path}",
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise TransportError(f"Expected JSON object from {path}")
        return data

    def upload_pic(
        self, image_path: str | Path, id_search: str | None = None,
        reset_prev_images: bool = False
    ) -> dict:
        """Upload image, optionally appending to an existing search."""
        path = Path(image_path)
        if not path.is_file():
            raise FileError(f"File not found: {path}", path=str(path))

        data = {}
        if id_search:
            data["id_search"] = id_search
        if reset_prev_images:
            data["reset_prev_images"] = "true"

        mime = image_mime_type(sniff_image(path))
        with open(path, "rb") as f:
            files = {"images": (path.name, f, mime)}
            return self.request("POST", "/api/upload_pic", data=data, files=files)

    def delete_pic(self, id_search: str, id_pic: str) -> dict:
        """Remove one picture from a search."""
        params = {"id_search": id_search, "id_pic": id_pic}
        return self.request("POST", "/api/delete_pic", params=params)

    def search(self, payload: dict) -> dict:
        """Submit or poll a search."""
        return self.request("POST", "/api/search", json=payload)

    def info(self) -> dict:
        """Account and service status."""
        return self.request("POST", "/api/info")
