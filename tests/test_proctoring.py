from assesscore.models import CandidateSession, ProctoringEvent
from assesscore.models import Test as TestModel
from assesscore.utils import proctoring


def log(client, headers, test_id, event_type, event_data=None):
    body = {"test_id": test_id, "event_type": event_type}
    if event_data is not None:
        body["event_data"] = event_data
    return client.post("/api/proctoring/log", json=body, headers=headers)


def test_tab_switch_counts_towards_both_counters(client, headers, sample_test):
    response = log(client, headers["candidate"], sample_test, "tab_switch", {"hidden": True})

    assert response.status_code == 200
    data = response.json()
    assert (data["tab_switch_count"], data["violation_count"], data["flagged"]) == (1, 1, False)


def test_flag_is_raised_after_exceeding_limit(client, headers, sample_test):
    counters = [log(client, headers["candidate"], sample_test, "tab_switch").json() for _ in range(4)]

    assert [c["flagged"] for c in counters] == [False, False, False, True]
    assert counters[-1]["tab_switch_count"] == 4
    assert counters[-1]["violation_count"] == 4


def test_flag_is_never_cleared(client, headers, sample_test):
    for _ in range(4):
        log(client, headers["candidate"], sample_test, "tab_switch")

    data = log(client, headers["candidate"], sample_test, "copy_attempt").json()

    assert data["flagged"] is True
    assert data["violation_count"] == 5


def test_copy_paste_and_fullscreen_are_violations_only(client, headers, sample_test):
    for event in ("copy_attempt", "paste_attempt", "fullscreen_exit"):
        data = log(client, headers["candidate"], sample_test, event).json()

    assert data["tab_switch_count"] == 0
    assert data["violation_count"] == 3
    assert data["flagged"] is False


def test_other_events_are_logged_without_counting(client, headers, db, sample_test):
    data = log(client, headers["candidate"], sample_test, "window_blur", {"ms": 120}).json()

    assert (data["tab_switch_count"], data["violation_count"], data["flagged"]) == (0, 0, False)
    event = db.query(ProctoringEvent).one()
    assert event.event_type == "window_blur"
    assert event.event_data == {"ms": 120}
    assert db.query(CandidateSession).count() == 0


def test_first_event_opens_session(client, headers, db, users, sample_test):
    log(client, headers["candidate"], sample_test, "tab_switch")

    session = db.query(CandidateSession).filter_by(candidate_id=users["candidate"]).one()
    assert session.status == "in_progress"
    assert session.started_at is not None


def test_counting_keeps_saved_progress(client, headers, db, users, sample_test):
    client.post(
        f"/api/tests/{sample_test}/save-progress",
        json={"answers": {"q1": "A"}, "time_remaining": 120},
        headers=headers["candidate"],
    )

    log(client, headers["candidate"], sample_test, "tab_switch")

    session = db.query(CandidateSession).filter_by(candidate_id=users["candidate"]).one()
    assert session.saved_answers == {"q1": "A"}
    assert session.tab_switch_count == 1


def test_candidate_id_comes_from_token(client, headers, db, users, sample_test):
    client.post(
        "/api/proctoring/log",
        json={"test_id": sample_test, "event_type": "tab_switch", "candidate_id": users["candidate2"]},
        headers=headers["candidate"],
    )

    assert db.query(ProctoringEvent).one().candidate_id == users["candidate"]


def test_missing_fields(client, headers, sample_test):
    response = client.post("/api/proctoring/log", json={"test_id": sample_test}, headers=headers["candidate"])
    assert response.status_code == 400
    assert "event_type" in response.json()["message"]


def test_unknown_test(client, headers, db, users):
    assert log(client, headers["candidate"], "nope", "tab_switch").status_code == 404
    assert db.query(ProctoringEvent).count() == 0


def test_limit_follows_test_settings(db, users):
    db.add(TestModel(id="t-strict", title="Strict", created_by=users["employer"], max_tab_switches=0))
    db.commit()

    counters = proctoring.log_event(db, users["candidate"], "t-strict", "tab_switch")

    assert counters["flagged"] is True


def test_settings(client, headers, sample_test):
    response = client.get(f"/api/proctoring/settings/{sample_test}", headers=headers["candidate"])

    assert response.status_code == 200
    assert response.json()["settings"] == {
        "enable_proctoring": True,
        "max_tab_switches": 3,
        "allow_copy_paste": False,
        "require_fullscreen": False,
    }


class TestReview:
    def seed(self, client, headers, test_id):
        log(client, headers["candidate"], test_id, "tab_switch")
        log(client, headers["candidate"], test_id, "tab_switch")
        log(client, headers["candidate"], test_id, "paste_attempt")
        log(client, headers["candidate"], test_id, "window_blur")
        log(client, headers["candidate2"], test_id, "copy_attempt")

    def test_events_for_test_newest_first(self, client, headers, sample_test):
        self.seed(client, headers, sample_test)

        response = client.get(f"/api/proctoring/test/{sample_test}/events", headers=headers["employer"])

        assert response.status_code == 200
        events = response.json()["events"]
        assert len(events) == 5
        assert events[0]["event_type"] == "copy_attempt"
        assert events[0]["candidate_email"] == "b@x.com"

    def test_events_for_test_require_owner_or_admin(self, client, headers, sample_test):
        url = f"/api/proctoring/test/{sample_test}/events"
        assert client.get(url, headers=headers["other_employer"]).status_code == 403
        assert client.get(url, headers=headers["candidate"]).status_code == 403
        assert client.get(url, headers=headers["admin"]).status_code == 200

    def test_candidate_summary(self, client, headers, users, sample_test):
        self.seed(client, headers, sample_test)

        response = client.get(
            f"/api/proctoring/test/{sample_test}/candidate/{users['candidate']}", headers=headers["employer"]
        )

        data = response.json()
        assert len(data["events"]) == 4
        assert data["summary"] == {
            "tab_switches": 2,
            "copy_attempts": 0,
            "paste_attempts": 1,
            "fullscreen_exits": 0,
            "total_events": 4,
        }

    def test_candidate_without_events(self, client, headers, users, sample_test):
        data = client.get(
            f"/api/proctoring/test/{sample_test}/candidate/{users['candidate']}", headers=headers["admin"]
        ).json()

        assert data["events"] == []
        assert data["summary"]["total_events"] == 0
