"""Session state owned by one client instance."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sgoclient.core.models import AppContext, StudyYear, SubjectRef
from sgoclient.services.cookies import CookieJar
from sgoclient.utils.dates import as_datetime


Clock = Callable[[], float]

DEFAULT_MARGIN_SECONDS = 1.0


class SessionState(enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Credentials:
    login: str
    password: str = field(repr=False)
    ttslogin: str = field(default="", repr=False)


@dataclass
class Session:
    """Token, cookies and account context of one portal login.

    Only the transition methods below mutate the session. Token, version and
    expiry are committed and cleared together; the account context is written
    once and then kept for the lifetime of the object.
    """

    host: str
    credentials: Credentials
    margin: float = DEFAULT_MARGIN_SECONDS
    clock: Clock = time.time

    token: Optional[str] = field(default=None, init=False, repr=False)
    version: Optional[str] = field(default=None, init=False)
    expires_at: Optional[float] = field(default=None, init=False)
    secure: bool = field(default=True, init=False)
    cookies: CookieJar = field(default_factory=CookieJar, init=False, repr=False)

    user_id: Optional[int] = field(default=None, init=False)
    class_id: Optional[int] = field(default=None, init=False)
    school_id: Optional[str] = field(default=None, init=False)
    year_id: Optional[str] = field(default=None, init=False)
    current_year: Optional[str] = field(default=None, init=False)
    school_name: Optional[str] = field(default=None, init=False)
    date_format: Optional[str] = field(default=None, init=False)
    time_format: Optional[str] = field(default=None, init=False)
    server_time_zone: Optional[float] = field(default=None, init=False)
    subjects: List[SubjectRef] = field(default_factory=list, init=False)
    study_year: Optional[StudyYear] = field(default=None, init=False)

    _logins_in_flight: int = field(default=0, init=False, repr=False)

    @property
    def base_url(self) -> str:
        return f"http{'s' if self.secure else ''}://{self.host}"

    @property
    def has_context(self) -> bool:
        return self.user_id is not None

    @property
    def state(self) -> SessionState:
        if self._logins_in_flight:
            return SessionState.AUTHENTICATING
        if self.token is None:
            return SessionState.ANONYMOUS
        if self.needs_authentication():
            return SessionState.EXPIRED
        return SessionState.AUTHENTICATED

    def needs_authentication(self) -> bool:
        if not self.token or not self.version or self.expires_at is None:
            return True
        return self.expires_at - self.clock() < self.margin

    def check_dates(self, *dates: object) -> bool:
        """True when every value is a date inside the school-year window."""
        if self.study_year is None:
            return False
        start = as_datetime(self.study_year.start)
        end = as_datetime(self.study_year.end)
        for value in dates:
            moment = as_datetime(value)
            if moment is None or moment < start or moment > end:
                return False
        return True

    def has_subject(self, subject_id: object) -> bool:
        wanted = str(subject_id)
        return any(subject.id == wanted for subject in self.subjects)

    # transitions

    def begin_login(self) -> None:
        self._logins_in_flight += 1

    def end_login(self) -> None:
        self._logins_in_flight = max(0, self._logins_in_flight - 1)

    def set_secure(self, secure: bool) -> None:
        self.secure = secure

    def commit_login(self, token: str, version: str, timeout_ms: float) -> None:
        self.token = token
        self.version = version
        self.expires_at = self.clock() + timeout_ms / 1000.0

    def apply_context(self, ctx: AppContext) -> None:
        if self.token is not None:
            self.token = ctx.at
            self.version = ctx.ver
        if self.has_context:
            return
        self.year_id = ctx.year_id
        self.school_id = ctx.school_id
        self.current_year = ctx.current_year
        self.school_name = ctx.school_name
        self.date_format = ctx.date_format
        self.time_format = ctx.time_format
        self.server_time_zone = ctx.server_time_zone

    def apply_catalog(
        self,
        *,
        user_id: int,
        class_id: int,
        subjects: List[SubjectRef],
        study_year: StudyYear,
    ) -> None:
        if self.has_context:
            return
        self.class_id = class_id
        self.subjects = list(subjects)
        self.study_year = study_year
        self.user_id = user_id

    def clear_token(self) -> None:
        self.token = None
        self.version = None
        self.expires_at = None
