"""Turn raw portal payloads into typed records.

HTML pages are read with BeautifulSoup, JSON payloads are validated by the
pydantic models in :mod:`sgoclient.core.models`. Every parser either returns a
fully populated record or raises :class:`ParseError`.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union

import httpx
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from sgoclient.core.errors import ParseError
from sgoclient.core.models import (
    AppContext,
    Birthday,
    BirthdayPerson,
    Journal,
    JournalRow,
    Subject,
    SubjectMark,
    UserInfo,
)


M = TypeVar("M", bound=BaseModel)

Payload = Union[str, bytes]

_CONTEXT_PAIR_RE = re.compile(r"(\w+)\s*:\s*(?:'([^']*)'|\"([^\"]*)\"|(-?\d+(?:\.\d+)?))")
_DATE_FORMATS = ("%d.%m.%Y", "%Y-%m-%d", "%d.%m.%y")

LABEL_SUBJECT = "Предмет"
LABEL_TEACHER = "Учитель"
LABEL_PERIOD = "Период"
LABEL_AVERAGE = "Средний балл"


def decode(payload: Payload) -> str:
    if isinstance(payload, str):
        return payload
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return payload.decode("windows-1251")


def parse_date(value: str) -> dt.date:
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ParseError(f"Unrecognised date {value!r}")


def json_payload(response: httpx.Response) -> Any:
    """Decoded JSON body of ``response``; anything else is a :class:`ParseError`."""
    try:
        return response.json()
    except ValueError as exc:
        raise ParseError(f"Expected JSON from {response.url}") from exc


def _payload(source: Any) -> Any:
    return json_payload(source) if isinstance(source, httpx.Response) else source


def parse_model(model: Type[M], payload: Any) -> M:
    try:
        return model.model_validate(_payload(payload))
    except PydanticValidationError as exc:
        raise ParseError(f"Unexpected {model.__name__} payload: {exc}") from exc


def parse_model_list(model: Type[M], payload: Any) -> List[M]:
    try:
        return TypeAdapter(List[model]).validate_python(_payload(payload))  # type: ignore[valid-type]
    except PydanticValidationError as exc:
        raise ParseError(f"Unexpected {model.__name__} list payload: {exc}") from exc


def parse_count(payload: Any) -> int:
    payload = _payload(payload)
    if isinstance(payload, bool) or not isinstance(payload, (int, str)):
        raise ParseError(f"Expected a counter, got {payload!r}")
    try:
        return int(payload)
    except ValueError as exc:
        raise ParseError(f"Expected a counter, got {payload!r}") from exc


# settings page


def _input_values(soup: BeautifulSoup) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for node in soup.find_all("input"):
        name = node.get("name")
        if name:
            values[name.lower()] = (node.get("value") or "").strip()
    return values


def _app_context_fields(soup: BeautifulSoup) -> Dict[str, str]:
    for script in soup.find_all("script"):
        text = script.string or script.get_text()
        if "appContext" not in text:
            continue
        body = text[text.index("appContext"):]
        fields: Dict[str, str] = {}
        for name, single, double, number in _CONTEXT_PAIR_RE.findall(body):
            fields.setdefault(name, single or double or number)
        return fields
    return {}


def parse_app_context(html: Payload) -> AppContext:
    """Read token, version and the ``appContext`` script object of the settings page."""
    soup = BeautifulSoup(decode(html), "html.parser")
    inputs = _input_values(soup)
    fields = _app_context_fields(soup)

    missing = [name for name in ("at", "ver") if not inputs.get(name)]
    missing += [name for name in ("yearId", "schoolId") if not fields.get(name)]
    if missing:
        raise ParseError(f"Settings page lacks {', '.join(missing)}")

    time_zone = fields.get("serverTimeZone")
    try:
        return AppContext(
            at=inputs["at"],
            ver=inputs["ver"],
            year_id=fields["yearId"],
            school_id=fields["schoolId"],
            current_year=fields.get("currYear") or None,
            school_name=fields.get("fullSchoolName") or None,
            date_format=fields.get("dateFormat") or None,
            time_format=fields.get("timeFormat") or None,
            server_time_zone=float(time_zone) if time_zone else None,
        )
    except (PydanticValidationError, ValueError) as exc:
        raise ParseError(f"Malformed application context: {exc}") from exc


def parse_user_info(html: Payload) -> UserInfo:
    soup = BeautifulSoup(decode(html), "html.parser")
    inputs = _input_values(soup)

    missing = [name for name in ("un", "lastname", "firstname") if not inputs.get(name)]
    if missing:
        raise ParseError(f"Settings page lacks {', '.join(missing)}")

    birth = inputs.get("birthdate")
    return UserInfo(
        login=inputs["un"],
        last_name=inputs["lastname"],
        first_name=inputs["firstname"],
        middle_name=inputs.get("middlename") or None,
        birth_date=parse_date(birth) if birth else None,
        email=inputs.get("email") or None,
        mobile_phone=inputs.get("mobilephone") or None,
    )


# report artifacts


def _report_rows(soup: BeautifulSoup) -> List[List[str]]:
    table = soup.find("table", class_="table-print")
    if not isinstance(table, Tag):
        raise ParseError("Report table not found")
    rows = []
    for tr in table.find_all("tr"):
        cells = [td.get_text(" ", strip=True) for td in tr.find_all("td")]
        if cells:
            rows.append(cells)
    return rows


def _labelled(text: str, label: str) -> Optional[str]:
    match = re.search(rf"{label}\s*:\s*([^\n]+)", text)
    return match.group(1).strip() if match else None


def _average(text: str) -> Optional[float]:
    value = _labelled(text, LABEL_AVERAGE)
    if not value:
        return None
    try:
        return float(value.split()[0].replace(",", "."))
    except ValueError as exc:
        raise ParseError(f"Malformed average {value!r}") from exc


def _optional_float(value: str) -> Optional[float]:
    value = value.strip().replace(",", ".")
    if not value or value == "-":
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ParseError(f"Malformed number {value!r}") from exc


def parse_subject(artifact: Payload) -> Subject:
    soup = BeautifulSoup(decode(artifact), "html.parser")
    text = soup.get_text("\n")
    name = _labelled(text, LABEL_SUBJECT)
    period = _labelled(text, LABEL_PERIOD)
    if not name or not period:
        raise ParseError("Subject report lacks subject name or period")

    marks = []
    for cells in _report_rows(soup):
        if len(cells) < 3:
            raise ParseError(f"Malformed subject report row {cells!r}")
        marks.append(
            SubjectMark(date=parse_date(cells[0]), work_type=cells[1] or None, mark=cells[2])
        )
    return Subject(
        name=name,
        period=period,
        teacher=_labelled(text, LABEL_TEACHER),
        marks=marks,
        average=_average(text),
    )


def parse_journal(artifact: Payload) -> Journal:
    soup = BeautifulSoup(decode(artifact), "html.parser")
    period = _labelled(soup.get_text("\n"), LABEL_PERIOD)
    if not period:
        raise ParseError("Journal report lacks period")

    rows = []
    for cells in _report_rows(soup):
        if len(cells) < 3:
            raise ParseError(f"Malformed journal row {cells!r}")
        subject, *marks, average, total = cells
        rows.append(
            JournalRow(
                subject=subject,
                marks=[mark for mark in marks if mark],
                average=_optional_float(average),
                total=total or None,
            )
        )
    return Journal(period=period, rows=rows)


def parse_birthdays(html: Payload, *, year: int, month: int) -> Birthday:
    soup = BeautifulSoup(decode(html), "html.parser")
    people = []
    for cells in _report_rows(soup):
        if len(cells) < 2:
            raise ParseError(f"Malformed birthday row {cells!r}")
        people.append(_birthday_person(cells, year))
    return Birthday(year=year, month=month, people=people)


def _birthday_person(cells: Sequence[str], year: int) -> BirthdayPerson:
    raw_date = cells[0].strip()
    if raw_date.count(".") == 1:
        raw_date = f"{raw_date}.{year}"
    return BirthdayPerson(
        date=parse_date(raw_date),
        name=cells[1],
        role=cells[2] if len(cells) > 2 and cells[2] else None,
        class_name=cells[3] if len(cells) > 3 and cells[3] else None,
    )
