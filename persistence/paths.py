from __future__ import annotations

from pathlib import Path


def project_root() -> Path:
    # persistence/paths.py -> persistence -> project root
    return Path(__file__).resolve().parents[1]


def data_dir() -> Path:
    return ensure_dir(project_root() / "data")


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def database_file(configured: str | None = None) -> Path:
    """
    Resolve the SQLite file: an explicit DATABASE_PATH wins, otherwise data/resume.db.
    """
    if configured:
        path = Path(configured).expanduser()
        ensure_dir(path.parent)
        return path
    return data_dir() / "resume.db"
