from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from .metadata import metadata_obj

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Anchor a relative SQLite URL (``sqlite:///./raffle.db``) at ``project_root``.

    Driver-qualified forms such as ``sqlite+pysqlite:///./raffle.db`` are
    handled too; every other URL is returned unchanged.
    """
    scheme, sep, rest = url.partition(":///")
    if not sep or not scheme.startswith("sqlite") or not rest.startswith("./"):
        return url
    return f"{scheme}:///{(project_root / rest[2:]).resolve()}"


# Get DB url
load_dotenv()
# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SQLITE_URL = resolve_sqlite_url(
    os.getenv("DB_URL", "sqlite:///./raffle.db"), ROOT_DIR
)


def make_engine(database_url: Optional[str] = None, echo: bool = False):
    url = database_url or DEFAULT_SQLITE_URL
    return create_engine(url, echo=echo, future=True)


def get_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Journal rows stay readable after commit
        future=True,
    )


def init_db(engine) -> None:
    """Create every raffle table that does not exist yet."""
    # Importing the models registers their tables on ``metadata_obj``.
    from ..models import Base  # noqa: F401

    metadata_obj.create_all(engine)
