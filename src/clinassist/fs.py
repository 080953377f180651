# Filesystem and id helpers used by the settings store and the HTTP dump.

import os
import pathlib
import uuid


def short_id(prefix: str) -> str:
    """Return a short unique identifier with the given prefix (e.g., req-1a2b3c4d)."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def write_text_atomic(path: pathlib.Path, text: str, mode: int = 0o600) -> None:
    """Atomically write text to path via a temp file, restricting permissions to the owner."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with tmp.open("w", encoding="utf-8") as f:
        f.write(text)
    os.chmod(tmp, mode)
    tmp.replace(path)
