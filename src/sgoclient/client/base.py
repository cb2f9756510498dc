"""Unprotected SGO portal client.

:class:`PortalClient` owns one :class:`~sgoclient.core.session.Session` and
drives its login/logout transitions. Concurrent calls are not deduplicated
here; wrap the client in :class:`~sgoclient.client.protected.ProtectedClient`
for that.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from sgoclient.core.errors import (
    AuthenticationError,
    BootstrapError,
    FetchError,
    IntervalTooShortError,
    ValidationError,
)
from sgoclient.core.models import (
    Announcement,
    Assignment,
    AssignmentType,
    Birthday,
    DiaryWeek,
    Journal,
    ReportFilter,
    StudyYear,
    Subject,
    SubjectRef,
    UserInfo,
)
from sgoclient.core.session import Clock, Credentials, Session
from sgoclient.core.settings import ClientSettings, ReportSettings
from sgoclient.services import parsers
from sgoclient.services.hashing import login_digest
from sgoclient.services.http_client import HttpClient
from sgoclient.services.reports import ReportPipeline, Sleep
from sgoclient.utils.dates import as_datetime, to_json
from sgoclient.utils.logging import get_logger


ONE_DAY = dt.timedelta(days=1)

_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"

SUBJECT_REPORT = "/webapi/reports/studentgrades"
JOURNAL_REPORT = "/webapi/reports/studenttotal"


class PortalClient:
    """Client for one SGO account."""

    def __init__(
        self,
        host: str,
        login: str,
        password: str,
        ttslogin: str = "",
        *,
        margin: float = 1.0,
        timeout: float = 30.0,
        user_agent: Optional[str] = None,
        report_settings: Optional[ReportSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        session_kwargs: Dict[str, Any] = {"margin": margin}
        if clock is not None:
            session_kwargs["clock"] = clock
        self.session = Session(
            host=host,
            credentials=Credentials(login=login, password=password, ttslogin=ttslogin),
            **session_kwargs,
        )
        self.http = HttpClient(timeout=timeout, user_agent=user_agent, transport=transport)
        pipeline_kwargs: Dict[str, Any] = {}
        if sleep is not None:
            pipeline_kwargs["sleep"] = sleep
        if clock is not None:
            pipeline_kwargs["clock"] = clock
        self.reports = ReportPipeline(self._request, report_settings, **pipeline_kwargs)
        self.logger = get_logger("PortalClient")
        self._auth_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs: Any) -> "PortalClient":
        return cls(
            settings.host,
            settings.login,
            settings.password,
            settings.ttslogin,
            margin=settings.session_margin_seconds,
            timeout=settings.request_timeout_seconds,
            user_agent=settings.user_agent,
            report_settings=settings.report,
            **kwargs,
        )

    def __repr__(self) -> str:
        return f"<PortalClient host={self.session.host!r} state={self.session.state.value}>"

    async def __aenter__(self) -> "PortalClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    def needs_authentication(self) -> bool:
        return self.session.needs_authentication()

    # transport

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        session = self.session
        headers = {
            "host": session.host,
            "cookie": session.cookies.render(),
            "referer": session.base_url,
            "content-type": "application/x-www-form-urlencoded",
            "x-requested-with": "xmlhttprequest",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _fetch(
        self,
        path: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[str] = None,
        json: Any = None,
    ) -> httpx.Response:
        extra = dict(headers or {})
        if json is not None:
            extra["content-type"] = "application/json"
        response = await self.http.perform(
            self.session.base_url + path,
            method=method,
            headers=self._headers(extra),
            params=params,
            content=body,
            json=json,
        )
        self.session.cookies.absorb(response.headers)
        return response

    async def _request(
        self,
        path: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        body: Optional[str] = None,
        auth_header: bool = True,
    ) -> httpx.Response:
        """Authenticated request: logs in first when the session needs it."""
        await self._ensure_session()
        headers = {"at": self.session.token or ""} if auth_header else None
        return await self._fetch(path, method=method, headers=headers, params=params, body=body, json=json)

    async def _ensure_session(self) -> None:
        session = self.session
        if session.has_context and not session.needs_authentication():
            return
        async with self._auth_lock:
            if session.needs_authentication():
                self.logger.info("Session missing or expiring; logging in")
                await self.log_in()
            elif not session.has_context:
                await self._bootstrap_context()

    # login sequence

    async def log_in(self) -> None:
        """Run the full login sequence and bootstrap the account context once."""
        session = self.session
        session.begin_login()
        try:
            await self._detect_scheme()
            seed = await self._fetch_login_seed()
            token, timeout_ms = await self._submit_credentials(seed)
            session.commit_login(token, seed["ver"], timeout_ms)
            self.logger.info("Logged in to %s as %s", session.host, session.credentials.login)
            if not session.has_context:
                await self._bootstrap_context()
        finally:
            session.end_login()

    async def _detect_scheme(self) -> None:
        try:
            response = await self._fetch("")
        except FetchError as exc:
            raise AuthenticationError(f"Portal landing page failed: {exc}") from exc
        self.session.set_secure(response.url.scheme == "https")

    async def _fetch_login_seed(self) -> Dict[str, str]:
        try:
            response = await self._fetch("/webapi/auth/getdata", method="POST")
            data = response.json()
        except (FetchError, ValueError) as exc:
            raise AuthenticationError(f"Login seed request failed: {exc}") from exc
        if not isinstance(data, dict) or any(data.get(name) in (None, "") for name in ("lt", "ver", "salt")):
            raise AuthenticationError("Login seed response lacks lt, ver or salt")
        return {name: str(data[name]) for name in ("lt", "ver", "salt")}

    def _login_body(self, seed: Mapping[str, str]) -> str:
        credentials = self.session.credentials
        digest = login_digest(credentials.password, seed["salt"])
        fields = [
            f"lt={seed['lt']}",
            f"ver={seed['ver']}",
            f"pw2={digest.full}",
            f"UN={quote(credentials.login, safe=_URI_SAFE)}",
            f"PW={digest.truncated}",
            "LoginType=1",
        ]
        return "&".join(fields) + "&" + credentials.ttslogin

    async def _submit_credentials(self, seed: Mapping[str, str]) -> tuple[str, float]:
        try:
            response = await self._fetch("/webapi/login", method="POST", body=self._login_body(seed))
            data = response.json()
        except (FetchError, ValueError) as exc:
            raise AuthenticationError(f"Login rejected: {exc}") from exc
        if not isinstance(data, dict) or not data.get("at") or data.get("timeOut") is None:
            message = data.get("message") if isinstance(data, dict) else None
            raise AuthenticationError(message or "Login response lacks at or timeOut")
        try:
            timeout_ms = float(data["timeOut"])
        except (TypeError, ValueError) as exc:
            raise AuthenticationError(f"Invalid session timeout {data['timeOut']!r}") from exc
        return str(data["at"]), timeout_ms

    async def _bootstrap_context(self) -> None:
        session = self.session
        try:
            page = await self._fetch(
                "/asp/MySettings/MySettings.asp",
                method="POST",
                params={"at": session.token},
                body=f"at={session.token}&ver={session.version}&",
            )
            session.apply_context(parsers.parse_app_context(page.text))

            response = await self._fetch("/webapi/reports/studentgrades", headers={"at": session.token or ""})
            data = response.json()
        except (FetchError, ValueError) as exc:
            raise BootstrapError(f"Account context unavailable: {exc}") from exc

        sources = data.get("filterSources") if isinstance(data, dict) else None
        if not isinstance(sources, list):
            raise BootstrapError("Report filters missing from studentgrades response")
        by_id = {source.get("filterId"): source for source in sources if isinstance(source, dict)}
        missing = [name for name in ("SID", "PCLID_IUP", "SGID", "period") if name not in by_id]
        if missing:
            raise BootstrapError(f"Report filters lack {', '.join(missing)}")

        try:
            period = by_id["period"]["defaultRange"]
            session.apply_catalog(
                user_id=int(by_id["SID"]["defaultValue"]),
                class_id=int(str(by_id["PCLID_IUP"]["defaultValue"]).split("_")[0]),
                subjects=[
                    SubjectRef(id=str(item["value"]), name=item["title"])
                    for item in by_id["SGID"].get("items", [])
                ],
                study_year=StudyYear(start=period["start"], end=period["end"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise BootstrapError(f"Malformed report filters: {exc}") from exc
        self.logger.info(
            "Loaded account context: user %s, class %s, %d subjects",
            session.user_id,
            session.class_id,
            len(session.subjects),
        )

    async def log_out(self) -> None:
        session = self.session
        try:
            await self._fetch(
                "/asp/logout.asp",
                method="POST",
                body=f"at={session.token}&ver={session.version}",
            )
        finally:
            session.clear_token()
            self.logger.info("Logged out of %s", session.host)

    # validation

    async def _validated(self, *dates: object) -> None:
        """Reject dates outside the school year; loads the window first if unknown."""
        if self.session.study_year is None:
            await self._ensure_session()
        if not self.session.check_dates(*dates):
            raise ValidationError("The date values are not valid or outside the school year.")

    # public operations

    async def user_info(self) -> UserInfo:
        await self._ensure_session()
        session = self.session
        response = await self._fetch(
            "/asp/MySettings/MySettings.asp",
            method="POST",
            params={"at": session.token},
            body=f"at={session.token}&ver={session.version}",
        )
        return parsers.parse_user_info(response.text)

    async def user_photo(self) -> bytes:
        await self._ensure_session()
        session = self.session
        response = await self._fetch(
            "/webapi/users/photo",
            params={"AT": session.token, "VER": session.version, "userId": session.user_id},
        )
        return response.content

    async def diary(self, start: dt.date, end: dt.date) -> DiaryWeek:
        """Lessons and assignments between ``start`` and ``end``.

        Both dates must fall inside the school year and be at least a day
        apart. With a bootstrapped session an invalid range is rejected
        without any request. On a fresh client the school-year window is not
        known yet, so the client logs in and loads the account context
        first; only then is the range checked and, if invalid, rejected
        before the diary endpoint is called.

        Raises :class:`ValidationError` for dates outside the window and
        :class:`IntervalTooShortError` for a span under one day.
        """
        await self._validated(start, end)
        if as_datetime(end) - as_datetime(start) < ONE_DAY:
            raise IntervalTooShortError("The interval should be more than a day.")
        await self._ensure_session()
        session = self.session
        response = await self._request(
            "/webapi/student/diary",
            params={
                "vers": session.version,
                "yearId": session.year_id,
                "weekEnd": to_json(end),
                "studentId": session.user_id,
                "weekStart": to_json(start),
            },
        )
        return parsers.parse_model(DiaryWeek, response)

    def _period(self, start: dt.date, end: dt.date) -> ReportFilter:
        return ReportFilter(filter_id="period", filter_value=f"{to_json(start)} - {to_json(end)}")

    async def subject(self, subject_id: str | int, start: dt.date, end: dt.date) -> Subject:
        if self.session.study_year is None:
            await self._ensure_session()
        if not self.session.has_subject(subject_id):
            raise ValidationError(f"Unknown subject id {subject_id!r}.")
        await self._validated(start, end)
        session = self.session
        artifact = await self.reports.run(
            SUBJECT_REPORT,
            [
                ReportFilter(filter_id="SID", filter_value=session.user_id),
                ReportFilter(filter_id="PCLID_IUP", filter_value=f"{session.class_id}_0"),
                ReportFilter(filter_id="SGID", filter_value=str(subject_id)),
                self._period(start, end),
            ],
        )
        return parsers.parse_subject(artifact)

    async def journal(self, start: dt.date, end: dt.date) -> Journal:
        await self._validated(start, end)
        session = self.session
        artifact = await self.reports.run(
            JOURNAL_REPORT,
            [
                ReportFilter(filter_id="SID", filter_value=session.user_id),
                ReportFilter(filter_id="PCLID", filter_value=session.class_id),
                self._period(start, end),
            ],
        )
        return parsers.parse_journal(artifact)

    async def birthdays(self, date: dt.date, without_parents: bool = True) -> Birthday:
        await self._validated(date)
        await self._ensure_session()
        session = self.session
        fields = [
            ("AT", session.token),
            ("VER", session.version),
            ("Year", date.year),
            ("Month", date.month),
            ("PCLID", session.class_id),
            ("ViewType", 1),
            ("LoginType", 0),
            ("BIRTH_STAFF", 1),
            ("BIRTH_PARENT", 0 if without_parents else 4),
            ("BIRTH_STUDENT", 2),
            ("From_MonthBirth", 1),
            ("MonthYear", f"{date.month},{date.year}"),
        ]
        response = await self._fetch(
            "/asp/Calendar/MonthBirth.asp",
            method="POST",
            body="&".join(f"{name}={value}" for name, value in fields),
        )
        return parsers.parse_birthdays(response.text, year=date.year, month=date.month)

    async def assignment(self, assignment_id: int) -> Assignment:
        await self._ensure_session()
        response = await self._request(
            f"/webapi/student/diary/assigns/{assignment_id}",
            params={"studentId": self.session.user_id},
        )
        return parsers.parse_model(Assignment, response)

    async def announcements(self) -> List[Announcement]:
        response = await self._request("/webapi/announcements", params={"take": -1})
        return parsers.parse_model_list(Announcement, response)

    async def assignment_types(self) -> List[AssignmentType]:
        response = await self._fetch("/webapi/grade/assignment/types")
        return parsers.parse_model_list(AssignmentType, response)

    async def unread_messages(self) -> int:
        response = await self._request("/webapi/mail/messages/unreaded")
        return parsers.parse_count(response)
