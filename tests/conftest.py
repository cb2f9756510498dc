from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from sgoclient.client import PortalClient
from sgoclient.core.settings import ReportSettings


HOST = "sgo.test"

SETTINGS_PAGE = """<html><body>
<form name="settings">
<input type="hidden" name="at" value="{at}">
<input type="hidden" name="VER" value="456">
<input name="UN" value="ivanov">
<input name="LastName" value="Иванов">
<input name="FirstName" value="Иван">
<input name="MiddleName" value="Иванович">
<input name="BirthDate" value="14.03.2009">
<input name="EMail" value="ivan@example.com">
<input name="MobilePhone" value="">
</form>
<script>
var appContext = { yearId: '101', schoolId: "55", currYear: '2023/2024',
  fullSchoolName: 'Школа №1', dateFormat: 'dd.mm.yyyy', timeFormat: 'hh:mm', serverTimeZone: 3 };
</script>
</body></html>"""

GRADE_FILTERS = {
    "filterSources": [
        {"filterId": "SID", "defaultValue": "4242"},
        {"filterId": "PCLID_IUP", "defaultValue": "31_0"},
        {
            "filterId": "SGID",
            "defaultValue": "-1",
            "items": [{"value": "11", "title": "Алгебра"}, {"value": "12", "title": "Физика"}],
        },
        {
            "filterId": "period",
            "defaultRange": {"start": "2023-09-01T00:00:00", "end": "2024-05-25T00:00:00"},
        },
    ]
}

JOURNAL_REPORT = """<html><body>
<p>Период: 01.09.2023 - 31.10.2023</p>
<table class="table-print">
<tr><th>Предмет</th><th colspan="3">Оценки</th><th>Средняя</th><th>Итог</th></tr>
<tr><td>Алгебра</td><td>5</td><td>4</td><td></td><td>4,5</td><td>5</td></tr>
<tr><td>Физика</td><td>3</td><td></td><td></td><td>-</td><td></td></tr>
</table>
</body></html>"""

SUBJECT_REPORT = """<html><body>
<h3>Отчет об успеваемости</h3>
<p>Предмет: Алгебра</p>
<p>Учитель: Петрова А.В.</p>
<p>Период: 01.09.2023 - 31.10.2023</p>
<table class="table-print">
<tr><th>Дата</th><th>Вид работы</th><th>Оценка</th></tr>
<tr><td>05.09.2023</td><td>Контрольная работа</td><td>5</td></tr>
<tr><td>12.09.2023</td><td>Ответ на уроке</td><td>4</td></tr>
</table>
<p>Средний балл: 4,50</p>
</body></html>"""

BIRTHDAY_PAGE = """<html><body>
<table class="table-print">
<tr><th>Дата</th><th>ФИО</th><th>Роль</th><th>Класс</th></tr>
<tr><td>03.10</td><td>Сидоров Петр</td><td>Ученик</td><td>7А</td></tr>
<tr><td>17.10</td><td>Петрова Анна Викторовна</td><td>Учитель</td><td></td></tr>
</table>
</body></html>"""

DIARY_WEEK = {
    "weekStart": "2023-09-04T00:00:00",
    "weekEnd": "2023-09-10T00:00:00",
    "termName": "1 четверть",
    "className": "7А",
    "weekDays": [
        {
            "date": "2023-09-05T00:00:00",
            "lessons": [
                {
                    "classmeetingId": 900,
                    "number": 1,
                    "subjectName": "Алгебра",
                    "room": "12",
                    "startTime": "08:30",
                    "endTime": "09:15",
                    "assignments": [
                        {
                            "id": 77,
                            "typeId": 3,
                            "assignmentName": "Упр. 12",
                            "weight": 10,
                            "dueDate": "2023-09-05T00:00:00",
                            "mark": {"mark": 5, "resultScore": None, "dutyMark": False},
                        }
                    ],
                }
            ],
        }
    ],
}


Handler = Callable[[httpx.Request], Any]


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested delays and advances the clock instead of waiting."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.clock.advance(delay)
        await asyncio.sleep(0)


class FakePortal:
    """In-memory SGO portal served through ``httpx.MockTransport``."""

    def __init__(self, *, timeout_ms: int = 2_400_000) -> None:
        self.timeout_ms = timeout_ms
        self.logins = 0
        self.login_delay = 0.0
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self._install_defaults()

    def _install_defaults(self) -> None:
        self.route("GET", "/", lambda request: httpx.Response(
            200, text="<html></html>", headers={"set-cookie": "NSSESSIONID=s1; path=/; HttpOnly"}
        ))
        self.route("POST", "/webapi/auth/getdata", json={"lt": "123", "ver": "456", "salt": "789"})
        self.route("POST", "/webapi/login", self._login)
        self.route("POST", "/asp/MySettings/MySettings.asp", lambda request: httpx.Response(
            200, text=SETTINGS_PAGE.replace("{at}", request.url.params.get("at", ""))
        ))
        self.route("GET", "/webapi/reports/studentgrades", json=GRADE_FILTERS)
        self.route("POST", "/asp/logout.asp", text="ok")

    async def _login(self, request: httpx.Request) -> httpx.Response:
        self.logins += 1
        token = f"token-{self.logins}"
        if self.login_delay:
            # later logins answer first so the earliest call completes last
            await asyncio.sleep(self.login_delay / self.logins)
        return httpx.Response(200, json={"at": token, "timeOut": self.timeout_ms})

    def route(
        self,
        method: str,
        path: str,
        handler: Optional[Handler] = None,
        *,
        json: Any = None,
        text: Optional[str] = None,
        content: Optional[bytes] = None,
        status: int = 200,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                if json is not None:
                    return httpx.Response(status, json=json)
                if content is not None:
                    return httpx.Response(status, content=content)
                return httpx.Response(status, text=text or "")
        self.routes[(method, path)] = handler

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, text=f"no route for {request.method} {request.url.path}")
        response = handler(request)
        if asyncio.iscoroutine(response):
            response = await response
        return response

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def client(portal: FakePortal, clock: FakeClock, sleep: FakeSleep) -> PortalClient:
    return PortalClient(
        HOST,
        "ivanov",
        "secret",
        "cid=2&sid=66&pid=-1&cn=1&sft=2&scid=5",
        transport=portal.transport(),
        clock=clock,
        sleep=sleep,
        report_settings=ReportSettings(
            poll_interval_seconds=1.0,
            backoff_factor=1.5,
            max_interval_seconds=5.0,
            max_wait_seconds=5.0,
        ),
    )


def day(year: int, month: int, value: int) -> dt.datetime:
    return dt.datetime(year, month, value)
