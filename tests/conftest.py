import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from assesscore.config import Settings
from assesscore.main import create_app
from assesscore.models import Question, User
from assesscore.models import Test as TestModel
from assesscore.utils.notifications import NotificationError, Notifier


class FakeTransport:
    """Collects outgoing mail instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()
        self.crash_for = set()

    def send(self, recipient, subject, html):
        if recipient in self.fail_for:
            raise NotificationError(f"Mailbox unavailable: {recipient}")
        if recipient in self.crash_for:
            raise RuntimeError(f"connection reset while sending to {recipient}")
        self.sent.append({"to": recipient, "subject": subject, "html": html})


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        frontend_url="https://assess.example.com",
        invitation_ttl_days=7,
        email_host=None,
        email_user=None,
        email_password=None,
        email_from=None,
        log_level="WARNING",
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def notifier(settings, transport):
    return Notifier(settings, transport=transport)


@pytest.fixture
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def app(settings, engine, notifier):
    return create_app(settings=settings, engine=engine, notifier=notifier)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users(db):
    rows = {
        "admin": User(id="u-admin", email="admin@example.com", name="Ada Admin", role="admin"),
        "employer": User(id="u-emp", email="hr@example.com", name="Hana Recruiter", role="employer"),
        "other_employer": User(id="u-emp2", email="other@example.com", name="Omar Other", role="employer"),
        "candidate": User(id="u-cand", email="a@x.com", name="Alex Candidate", role="candidate"),
        "candidate2": User(id="u-cand2", email="b@x.com", name="Bea Candidate", role="candidate"),
    }
    db.add_all(rows.values())
    db.commit()
    return {key: user.id for key, user in rows.items()}


def auth(user_id):
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def headers(users):
    return {key: auth(user_id) for key, user_id in users.items()}


def make_test(db, test_id, owner_id, questions, **fields):
    test = TestModel(id=test_id, title=fields.pop("title", f"Test {test_id}"), created_by=owner_id, **fields)
    db.add(test)
    for position, (qid, qtype, options, key) in enumerate(questions):
        db.add(Question(
            id=qid,
            test_id=test_id,
            position=position,
            question_text=f"Question {qid}",
            question_type=qtype,
            options=options,
            correct_answer=key,
        ))
    db.commit()
    return test_id


@pytest.fixture
def sample_test(db, users):
    """Two auto-graded questions with keys "A" and "B"."""
    return make_test(
        db, "t1", users["employer"],
        [
            ("q1", "multiple_choice", ["A", "B", "C"], "A"),
            ("q2", "multiple_choice", '["A", "B", "C"]', "B"),
        ],
        title="Python Basics",
        description="Warm-up questions",
        time_limit=15,
        max_tab_switches=3,
    )


@pytest.fixture
def mixed_test(db, users):
    return make_test(
        db, "t-mixed", users["employer"],
        [
            ("m1", "multiple_choice", "Red,Green,Blue", "Green"),
            ("m2", "true_false", "True,False", "True"),
            ("m3", "essay", None, None),
        ],
    )


@pytest.fixture
def free_form_test(db, users):
    return make_test(
        db, "t-free", users["employer"],
        [
            ("f1", "essay", None, None),
            ("f2", "short_answer", None, None),
        ],
    )


@pytest.fixture
def empty_test(db, users):
    return make_test(db, "t-empty", users["employer"], [])
