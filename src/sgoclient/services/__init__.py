"""Transport, cookie, hashing, parsing and report services."""

from .cookies import CookieJar
from .http_client import HttpClient
from .reports import ReportJob, ReportPipeline, ReportStatus

__all__ = [
    "CookieJar",
    "HttpClient",
    "ReportJob",
    "ReportPipeline",
    "ReportStatus",
]
