from pathlib import Path, PurePosixPath
from uuid import uuid4

from slidegen.config import settings


def make_staging_key(job_id: str, filename: str, index: int | None = None) -> str:
    safe_name = PurePosixPath(str(filename).replace("\\", "/")).name or str(uuid4())
    if index is not None:
        safe_name = f"{index:02d}-{safe_name}"
    return f"{job_id}/{safe_name}"


class BlobStore:
    """Filesystem-backed staging area for uploaded input files.

    Keys are relative POSIX paths (``<job_id>/<filename>``) resolved under the
    store root; keys that would escape the root are rejected.
    """

    def __init__(self, root: Path | None = None):
        self.root = Path(root or settings.storage_root / "staging")
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid staging key: {key}")
        return path

    def put(self, key: str, data: bytes) -> str:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return key

    def get(self, key: str) -> bytes:
        return self._path_for(key).read_bytes()

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        path.unlink()
        parent = path.parent
        if parent != self.root.resolve() and not any(parent.iterdir()):
            parent.rmdir()
