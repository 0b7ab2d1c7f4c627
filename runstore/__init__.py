from runstore.adapter import Backend, StorageAdapter, make_adapter
from runstore.config import Settings, load_settings
from runstore.context import RequestContext
from runstore.errors import (
    DecodeError,
    IntegrityViolation,
    QueryError,
    QueryTimeout,
    RunStoreError,
    StorageConnectionError,
)
from runstore.query import Criteria, build_select
from runstore.repository import RunRepository, RunResult
from runstore.schema import create_schema
from runstore.stats import comparative_stats
from runstore.urls import canonicalize_url

__version__ = "0.1.0"
