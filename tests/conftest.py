import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import collab.models  # noqa: F401
from collab.core.database import Base
from collab.services.host import Activity, Course, Group, NO_GROUPS
from collab.services.recording_cache import RecordingCountsCache
from collab.services.remote.testable_client import TestableClient


class FakeRedis:
    def __init__(self):
        self._store = {}

    def set(self, key, value, ex=None):
        expires_at = time.time() + ex if ex else None
        self._store[key] = (value, expires_at)

    def get(self, key):
        value, expires_at = self._store.get(key, (None, None))
        if value is None:
            return None
        if expires_at is not None and time.time() >= expires_at:
            self._store.pop(key, None)
            return None
        return value

    def delete(self, key):
        self._store.pop(key, None)


class FakeHost:
    def __init__(self):
        self.courses = {}
        self.groups = []
        self.groupings = {}  # group_id -> grouping_id
        self.memberships = {}  # user_id -> set of group ids
        self.access_all_groups = set()
        self.recording_deleters = set()
        self.guest_urls = {}
        self.events = []
        self.enrolments = {}  # course_id -> list of user ids
        self.capabilities = {}  # capability -> set of user ids

    def add_course(self, course_id, fullname="Course"):
        course = Course(id=course_id, fullname=fullname)
        self.courses[course_id] = course
        return course

    def add_group(self, group_id, course_id, name="", members=(), grouping_id=0):
        group = Group(id=group_id, course_id=course_id, name=name or f"Group {group_id}")
        self.groupings[group_id] = grouping_id
        self.groups.append(group)
        for user_id in members:
            self.memberships.setdefault(user_id, set()).add(group_id)
        return group

    def enrol(self, course_id, user_id, capabilities=()):
        self.enrolments.setdefault(course_id, []).append(user_id)
        for capability in capabilities:
            self.capabilities.setdefault(capability, set()).add(user_id)

    def get_course(self, course_id):
        return self.courses[course_id]

    def list_groups(self, course_id, user_id=0, grouping_id=0):
        groups = [g for g in self.groups if g.course_id == course_id]
        if grouping_id:
            groups = [g for g in groups if self.groupings.get(g.id) == grouping_id]
        if user_id:
            mine = self.memberships.get(user_id, set())
            groups = [g for g in groups if g.id in mine]
        return groups

    def list_enrolled_user_ids(self, course_id, group_id=0, with_capability=""):
        users = self.enrolments.get(course_id, [])
        if group_id:
            users = [u for u in users if group_id in self.memberships.get(u, set())]
        if with_capability:
            users = [u for u in users if u in self.capabilities.get(with_capability, set())]
        return list(users)

    def has_access_all_groups(self, user_id, activity):
        return user_id in self.access_all_groups

    def can_delete_recordings(self, user_id, activity):
        return user_id in self.recording_deleters

    def save_guest_url(self, activity_id, url):
        self.guest_urls[activity_id] = url

    def trigger_event(self, event):
        self.events.append(event)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestableClient()


@pytest.fixture
def host():
    host = FakeHost()
    host.add_course(10, fullname="Biology 101")
    return host


@pytest.fixture
def activity():
    return Activity(
        id=1,
        course=10,
        name="Weekly seminar",
        time_start=1_700_000_000,
        duration=3600,
        group_mode=NO_GROUPS,
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return RecordingCountsCache(redis_client=fake_redis, ttl_seconds=60)
