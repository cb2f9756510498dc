from __future__ import annotations

import datetime as dt

from sgoclient.core.models import AppContext, StudyYear, SubjectRef
from sgoclient.core.session import Credentials, Session, SessionState
from sgoclient.services.hashing import login_digest, md5_hex

from conftest import FakeClock


def _session(clock: FakeClock) -> Session:
    return Session(host="sgo.test", credentials=Credentials("ivanov", "secret"), clock=clock)


def _with_window(session: Session) -> Session:
    session.apply_catalog(
        user_id=1,
        class_id=2,
        subjects=[SubjectRef(id="11", name="Алгебра")],
        study_year=StudyYear(start=dt.datetime(2023, 9, 1), end=dt.datetime(2024, 5, 25)),
    )
    return session


def test_fresh_session_needs_authentication(clock):
    session = _session(clock)
    assert session.needs_authentication()
    assert session.state is SessionState.ANONYMOUS
    assert session.token is None and session.expires_at is None


def test_expiry_margin(clock):
    session = _session(clock)
    session.commit_login("tok", "456", 60_000)
    assert not session.needs_authentication()
    assert session.state is SessionState.AUTHENTICATED

    clock.advance(58.5)
    assert not session.needs_authentication()
    clock.advance(0.6)
    assert session.needs_authentication()
    assert session.state is SessionState.EXPIRED


def test_clear_token_resets_token_version_and_expiry_together(clock):
    session = _with_window(_session(clock))
    session.commit_login("tok", "456", 60_000)
    session.cookies.absorb("sid=1")

    session.clear_token()

    assert (session.token, session.version, session.expires_at) == (None, None, None)
    assert session.user_id == 1
    assert session.cookies.get("sid") == "1"


def test_account_context_is_written_once(clock):
    session = _with_window(_session(clock))
    session.commit_login("tok", "456", 60_000)
    session.apply_catalog(
        user_id=99,
        class_id=98,
        subjects=[],
        study_year=StudyYear(start=dt.datetime(2030, 1, 1), end=dt.datetime(2030, 2, 1)),
    )
    session.apply_context(AppContext(at="fresh", ver="9", year_id="7", school_id="8"))

    assert session.user_id == 1
    assert session.class_id == 2
    assert session.study_year.start == dt.datetime(2023, 9, 1)
    assert session.year_id is None
    assert session.token == "fresh"


def test_check_dates(clock):
    session = _session(clock)
    assert not session.check_dates(dt.date(2023, 10, 1))

    _with_window(session)
    assert session.check_dates(dt.date(2023, 9, 1), dt.datetime(2024, 5, 25))
    assert session.check_dates(dt.datetime(2023, 10, 1, 12, tzinfo=dt.timezone.utc))
    assert not session.check_dates(dt.date(2023, 8, 31))
    assert not session.check_dates(dt.date(2023, 10, 1), dt.date(2024, 6, 1))
    assert not session.check_dates("2023-10-01")
    assert not session.check_dates(None)


def test_base_url_follows_scheme(clock):
    session = _session(clock)
    assert session.base_url == "https://sgo.test"
    session.set_secure(False)
    assert session.base_url == "http://sgo.test"


def test_login_digest_is_deterministic_and_truncated():
    first = login_digest("secret", "789")
    second = login_digest("secret", "789")

    assert first == second
    assert first.full == md5_hex("789" + md5_hex("secret"))
    assert len(first.truncated) == len("secret")
    assert first.full.startswith(first.truncated)
    assert login_digest("secret", "790").full != first.full
