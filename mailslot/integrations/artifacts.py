"""
Local-disk artifact store for artwork uploads.
"""
import re
import secrets
from pathlib import Path
from typing import Optional

from mailslot.config import ARTIFACT_SETTINGS
from mailslot.exceptions import NotFoundError, ValidationError
from mailslot.integrations.base import ArtifactStore
from mailslot.utils import get_logger

logger = get_logger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


class LocalArtifactStore(ArtifactStore):

    def __init__(self, root: Optional[str] = None, max_bytes: Optional[int] = None):
        self.root = Path(root or str(ARTIFACT_SETTINGS["storage_dir"])).resolve()
        self.max_bytes = int(max_bytes or ARTIFACT_SETTINGS["max_bytes"])

    def store(self, file_name: str, content: bytes) -> str:
        if not content:
            raise ValidationError("Artwork file is empty", details={"file_name": file_name})
        if len(content) > self.max_bytes:
            raise ValidationError(
                "Artwork file is too large",
                details={"file_name": file_name, "size": len(content), "max_bytes": self.max_bytes},
            )
        safe = _SAFE_NAME.sub("_", Path(file_name).name).strip("._") or "artwork"
        self.root.mkdir(parents=True, exist_ok=True)
        stored_name = f"{secrets.token_hex(8)}_{safe}"
        (self.root / stored_name).write_bytes(content)
        logger.info("Artifact stored", file_name=file_name, stored_name=stored_name, size=len(content))
        return stored_name

    def retrieve(self, file_path: str) -> bytes:
        target = (self.root / file_path).resolve()
        if self.root not in target.parents or not target.is_file():
            raise NotFoundError(f"Artifact {file_path} not found", details={"file_path": file_path})
        return target.read_bytes()
