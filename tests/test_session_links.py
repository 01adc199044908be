import pytest

from collab.core.errors import CodingError, RemoteSessionError
from collab.models.session_link import SessionLink
from collab.schemas.session_link import SessionLinkCandidate
from collab.services.enrolees import MODERATOR_CAPABILITY
from collab.services.host import SEPARATE_GROUPS
from collab.services.session_links import SessionLinkStore


def _store(db, client, host, simulation_mode=False):
    return SessionLinkStore(db, client, host, simulation_mode=simulation_mode)


def test_missing_activity_id_is_a_coding_error(db, client, host, activity):
    store = _store(db, client, host)
    with pytest.raises(CodingError):
        store.ensure_session_link(activity, host.get_course(10), SessionLinkCandidate(group_id=5))
    assert client.calls == []


def test_ensure_creates_remote_session_and_link(db, client, host, activity):
    store = _store(db, client, host)
    link = store.ensure_session_link(
        activity, host.get_course(10), SessionLinkCandidate(activity_id=activity.id)
    )
    assert link.id is not None
    assert link.group_id is None
    assert link.session_id == "session-1"
    assert link.deletion_attempted == 0
    assert client.calls == [("create_session", None)]


def test_ensure_is_idempotent_for_a_group(db, client, host, activity):
    store = _store(db, client, host)
    course = host.get_course(10)
    first = store.ensure_session_link(activity, course, SessionLinkCandidate(activity_id=1, group_id=7))
    second = store.ensure_session_link(activity, course, SessionLinkCandidate(activity_id=1, group_id=7))

    assert first.id == second.id
    assert second.session_id == first.session_id
    assert db.query(SessionLink).count() == 1
    assert client.calls == [("create_session", 7), ("update_session", first.session_id)]


def test_ensure_with_session_id_updates_instead_of_creating(db, client, host, activity):
    store = _store(db, client, host)
    link = store.ensure_session_link(
        activity, host.get_course(10), SessionLinkCandidate(activity_id=1, session_id="S1", group_id=None)
    )
    assert link.session_id == "S1"
    assert client.calls == [("update_session", "S1")]


def test_simulation_mode_reuses_seeded_session(db, client, host, activity):
    activity.session_id = "seeded"
    store = _store(db, client, host, simulation_mode=True)
    link = store.ensure_session_link(activity, host.get_course(10), SessionLinkCandidate(activity_id=1))
    assert link.session_id == "seeded"
    assert client.calls == []


def test_simulation_mode_still_creates_group_sessions(db, client, host, activity):
    activity.session_id = "seeded"
    store = _store(db, client, host, simulation_mode=True)
    link = store.ensure_session_link(
        activity, host.get_course(10), SessionLinkCandidate(activity_id=1, group_id=3)
    )
    assert link.session_id == "session-1"


def test_pending_deletion_link_is_not_reused(db, client, host, activity):
    db.add(SessionLink(activity_id=1, group_id=4, session_id="old", deletion_attempted=2))
    db.commit()

    link = _store(db, client, host).get_group_session_link(activity, 4)

    assert link.session_id == "session-1"
    assert link.deletion_attempted == 0
    pending = db.query(SessionLink).filter_by(session_id="old").one()
    assert pending.deletion_attempted == 2


def test_get_group_session_link_returns_existing(db, client, host, activity):
    db.add(SessionLink(activity_id=1, group_id=4, session_id="G4"))
    db.commit()

    link = _store(db, client, host).get_group_session_link(activity, 4)

    assert link.session_id == "G4"
    assert client.calls == []


def test_create_failure_propagates(db, client, host, activity):
    client.fail_creates = True
    with pytest.raises(RemoteSessionError):
        _store(db, client, host).get_group_session_link(activity, 4)
    assert db.query(SessionLink).count() == 0


def test_apply_adds_group_links_next_to_whole_activity_link(db, client, host, activity):
    db.add(SessionLink(activity_id=1, group_id=None, session_id="S1"))
    db.commit()
    host.add_group(11, 10, name="Red")
    activity.session_id = "S1"
    activity.group_mode = SEPARATE_GROUPS

    result = _store(db, client, host).apply_session_links(activity)

    assert result.ok
    rows = {
        (l.activity_id, l.group_id, l.session_id, l.deletion_attempted)
        for l in db.query(SessionLink).all()
    }
    assert rows == {(1, None, "S1", 0), (1, 11, "session-1", 0)}
    assert ("create_session", 11) in client.calls


def test_apply_without_group_mode_only_links_activity(db, client, host, activity):
    host.add_group(11, 10)
    result = _store(db, client, host).apply_session_links(activity)
    assert result.ok
    assert [l.group_id for l in result.links] == [None]


def test_apply_twice_keeps_one_link_per_group(db, client, host, activity):
    host.add_group(11, 10)
    host.add_group(12, 10)
    activity.group_mode = SEPARATE_GROUPS
    store = _store(db, client, host)

    store.apply_session_links(activity)
    store.apply_session_links(activity)

    assert db.query(SessionLink).count() == 3
    assert db.query(SessionLink).filter(SessionLink.group_id.is_(None)).count() == 1


def test_apply_respects_grouping(db, client, host, activity):
    host.add_group(11, 10, grouping_id=5)
    host.add_group(12, 10, grouping_id=6)
    activity.group_mode = SEPARATE_GROUPS
    activity.grouping_id = 5

    result = _store(db, client, host).apply_session_links(activity)

    assert sorted(l.group_id for l in result.links if l.group_id) == [11]


class _FlakyClient:
    """Delegates to the testable client but fails creation for one group."""

    def __init__(self, inner, failing_group):
        self.inner = inner
        self.failing_group = failing_group

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def create_session(self, activity, course, group_id, attendees=None):
        if group_id == self.failing_group:
            raise RemoteSessionError("remote down")
        return self.inner.create_session(activity, course, group_id, attendees)


def test_apply_isolates_group_failures(db, client, host, activity):
    for group_id in (11, 12, 13):
        host.add_group(group_id, 10)
    activity.group_mode = SEPARATE_GROUPS

    result = _store(db, _FlakyClient(client, failing_group=12), host).apply_session_links(activity)

    assert not result.ok
    assert [e.group_id for e in result.errors] == [12]
    assert sorted(l.group_id for l in result.links if l.group_id) == [11, 13]
    assert db.query(SessionLink).count() == 3


def test_titles_by_session_ids(db, client, host, activity):
    host.add_group(11, 10, name="Red")
    db.add_all([
        SessionLink(activity_id=1, group_id=None, session_id="S1"),
        SessionLink(activity_id=1, group_id=11, session_id="S2"),
    ])
    db.commit()

    titles = _store(db, client, host).get_titles_by_session_ids(["S1", "S2", "S3"], {1: activity})

    assert titles == {"S1": "Weekly seminar", "S2": "Weekly seminar (Red)"}


def test_ensure_is_idempotent_for_the_whole_activity(db, client, host, activity):
    store = _store(db, client, host)
    course = host.get_course(10)
    first = store.ensure_session_link(activity, course, SessionLinkCandidate(activity_id=1))
    second = store.ensure_session_link(activity, course, SessionLinkCandidate(activity_id=1))

    assert first.id == second.id
    assert db.query(SessionLink).count() == 1
    assert set(client.sessions) == {"session-1"}
    assert client.calls == [("create_session", None), ("update_session", "session-1")]


def test_new_whole_activity_session_retires_the_old_link(db, client, host, activity):
    db.add(SessionLink(activity_id=1, group_id=None, session_id="old"))
    db.commit()

    link = _store(db, client, host).ensure_session_link(
        activity, host.get_course(10), SessionLinkCandidate(activity_id=1, session_id="new", group_id=None)
    )

    assert link.session_id == "new"
    assert link.deletion_attempted == 0
    old = db.query(SessionLink).filter_by(session_id="old").one()
    assert old.deletion_attempted == 1
    assert db.query(SessionLink).filter_by(group_id=None, deletion_attempted=0).count() == 1


class _RacingClient:
    """Inserts a competing link while the remote session is being created."""

    def __init__(self, inner, db):
        self.inner = inner
        self.db = db

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def create_session(self, activity, course, group_id, attendees=None):
        self.db.add(SessionLink(activity_id=activity.id, group_id=group_id, session_id="winner"))
        self.db.commit()
        return self.inner.create_session(activity, course, group_id, attendees)


def test_losing_a_creation_race_queues_the_extra_session(db, client, host, activity):
    store = _store(db, _RacingClient(client, db), host)

    link = store.ensure_session_link(activity, host.get_course(10), SessionLinkCandidate(activity_id=1, group_id=4))

    assert link.session_id == "winner"
    assert db.query(SessionLink).filter_by(group_id=4, deletion_attempted=0).count() == 1
    extra = db.query(SessionLink).filter_by(session_id="session-1").one()
    assert extra.deletion_attempted == 1


def test_ensure_sends_moderators_and_participants(db, client, host, activity):
    host.add_group(4, 10, members=(20, 21, 30))
    host.enrol(10, 20, capabilities=(MODERATOR_CAPABILITY,))
    host.enrol(10, 21)
    host.enrol(10, 22)
    host.enrol(10, 30)
    store = SessionLinkStore(db, client, host, actor_id=99)

    link = store.ensure_session_link(activity, host.get_course(10), SessionLinkCandidate(activity_id=1, group_id=4))

    details = client.sessions[link.session_id]
    assert details.moderators == [99, 20]
    assert details.participants == [21, 30]
