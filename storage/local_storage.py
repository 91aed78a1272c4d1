"""
Local-disk image storage, used when S3 is disabled (development and tests).
Files are served by the app under LOCAL_UPLOADS_URL_PREFIX.
"""
from pathlib import Path

from core.logger import logger


class LocalStorage:
    """Stores objects as files below a root directory."""

    def __init__(self, root_dir: Path, base_url: str = "", url_prefix: str = "/uploads"):
        """
        Args:
            root_dir: Directory that holds stored objects
            base_url: Public origin of the API (e.g. http://localhost:8000); empty for relative URLs
            url_prefix: Path the app mounts root_dir at
        """
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self.url_prefix = url_prefix.rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root_dir / key).resolve()
        if self.root_dir.resolve() not in path.parents:
            raise ValueError(f"Storage key escapes upload directory: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Write bytes under ``key`` and return a URL the app serves them at."""
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Saved file locally: {path} ({len(data)} bytes, {content_type})")
        return self.url_for(key)

    def url_for(self, key: str) -> str:
        return f"{self.base_url}{self.url_prefix}/{key}"

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if path.exists():
            path.unlink()
            logger.info(f"Deleted local file: {path}")
            return True
        return False

    def exists(self, key: str) -> bool:
        return self._path_for(key).exists()

    def check_health(self) -> dict:
        return {"status": "ok", "backend": "local", "path": str(self.root_dir)}
