from __future__ import annotations

import logging
import os

import filelock
import sqlalchemy
from sqlalchemy import Column, DateTime, Integer, LargeBinary, String
from sqlalchemy.orm import declarative_base

logger = logging.getLogger("runstore")

Base = declarative_base()

BINARY_COLUMNS = ("perfdata", "cookie", "post", "get")


class Run(Base):
    __tablename__ = "details"

    # unique run ID
    id = Column(String(32), primary_key=True)

    # Request identity
    url = Column(String(255), nullable=True, index=True)
    canonical_url = Column(String(255), nullable=True, index=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    server_name = Column(String(64), nullable=True)

    # Compressed profiler payload
    perfdata = Column(LargeBinary, nullable=True)
    type = Column(Integer, nullable=True, default=0)

    # Request snapshot, serialized but not compressed
    cookie = Column(LargeBinary, nullable=True)
    post = Column(LargeBinary, nullable=True)
    get = Column(LargeBinary, nullable=True)

    # Headline metrics of main()
    pmu = Column(Integer, nullable=True, index=True)
    wt = Column(Integer, nullable=True, index=True)
    cpu = Column(Integer, nullable=True, index=True)

    server_id = Column(String(17), nullable=False, default="t11")
    extra_tag = Column(String(255), nullable=True)


details = Run.__table__


def create_schema(engine: sqlalchemy.engine.Engine) -> None:
    """Create the ``details`` table if it does not exist yet.

    For file-backed SQLite databases the creation runs under a file lock next to
    the database file, so several worker processes can call this at startup.
    """
    database = engine.url.database
    if engine.dialect.name == "sqlite" and database and database != ":memory:":
        lock = os.path.abspath(database) + ".lock"
        with filelock.FileLock(lock):
            Base.metadata.create_all(engine)
    else:
        Base.metadata.create_all(engine)
    logger.debug("Schema ready on %s", engine.url.render_as_string(hide_password=True))
