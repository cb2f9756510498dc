"""Typed records shared across the SGO client."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PortalModel(BaseModel):
    """Base for records decoded from portal JSON (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class SubjectRef(BaseModel):
    """Entry of the account's subject catalog."""

    id: str
    name: str


class StudyYear(BaseModel):
    """School-year window every date-scoped query is validated against."""

    start: dt.datetime
    end: dt.datetime


class AppContext(BaseModel):
    """Context fields published by the account settings page."""

    at: str
    ver: str
    year_id: str
    school_id: str
    current_year: Optional[str] = None
    school_name: Optional[str] = None
    date_format: Optional[str] = None
    time_format: Optional[str] = None
    server_time_zone: Optional[float] = None


class ReportFilter(PortalModel):
    filter_id: str
    filter_value: Union[str, int]


class UserInfo(BaseModel):
    login: str
    last_name: str
    first_name: str
    middle_name: Optional[str] = None
    birth_date: Optional[dt.date] = None
    email: Optional[str] = None
    mobile_phone: Optional[str] = None


class LessonMark(PortalModel):
    mark: Optional[Union[int, str]] = None
    result_score: Optional[float] = None
    duty_mark: bool = False


class LessonAssignment(PortalModel):
    id: int
    type_id: int
    assignment_name: str
    weight: Optional[int] = None
    due_date: Optional[dt.datetime] = None
    mark: Optional[LessonMark] = None


class Lesson(PortalModel):
    class_meeting_id: Optional[int] = Field(default=None, alias="classmeetingId")
    number: int
    subject_name: str
    room: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    assignments: List[LessonAssignment] = Field(default_factory=list)


class DiaryDay(PortalModel):
    date: dt.datetime
    lessons: List[Lesson] = Field(default_factory=list)


class DiaryWeek(PortalModel):
    week_start: dt.datetime
    week_end: dt.datetime
    week_days: List[DiaryDay] = Field(default_factory=list)
    term_name: Optional[str] = None
    class_name: Optional[str] = None


class NamedRef(PortalModel):
    id: int
    name: str


class Attachment(PortalModel):
    id: int
    name: Optional[str] = None
    original_file_name: Optional[str] = None
    description: Optional[str] = None


class Assignment(PortalModel):
    id: int
    assignment_name: str
    activity_name: Optional[str] = None
    problem_name: Optional[str] = None
    subject_group: Optional[NamedRef] = None
    teacher: Optional[NamedRef] = None
    weight: Optional[int] = None
    date: Optional[dt.datetime] = None
    description: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)


class AnnouncementAuthor(PortalModel):
    id: int
    fio: str
    nick_name: Optional[str] = None


class Announcement(PortalModel):
    id: int
    name: str
    author: Optional[AnnouncementAuthor] = None
    description: str = ""
    post_date: Optional[dt.datetime] = None
    attachments: List[Attachment] = Field(default_factory=list)


class AssignmentType(PortalModel):
    id: int
    name: str
    abbr: Optional[str] = None
    order: Optional[int] = None


class SubjectMark(BaseModel):
    date: dt.date
    mark: str
    work_type: Optional[str] = None


class Subject(BaseModel):
    """Per-subject grade report."""

    name: str
    period: str
    teacher: Optional[str] = None
    marks: List[SubjectMark] = Field(default_factory=list)
    average: Optional[float] = None


class JournalRow(BaseModel):
    subject: str
    marks: List[str] = Field(default_factory=list)
    average: Optional[float] = None
    total: Optional[str] = None


class Journal(BaseModel):
    """Class journal / totals report."""

    period: str
    rows: List[JournalRow] = Field(default_factory=list)


class BirthdayPerson(BaseModel):
    name: str
    date: dt.date
    role: Optional[str] = None
    class_name: Optional[str] = None


class Birthday(BaseModel):
    """Birthdays of one month."""

    year: int
    month: int
    people: List[BirthdayPerson] = Field(default_factory=list)

    def on(self, day: int) -> List[BirthdayPerson]:
        return [person for person in self.people if person.date.day == day]
