from datetime import date

from conftest import at, make_log, make_request
from models.edit_requests import EditRequestStatus
from models.time_logs import LogType
from utils.edit_request_utils import find_pending_request, group_continuous_sessions, overlay
from utils.session_utils import build_sessions


def test_overlay_shows_requested_times_while_pending():
    log = make_log("a", at(1, 9), at(1, 17))
    session = build_sessions([log])[0]
    request = make_request("r1", ["a"], at(1, 8), at(1, 17, 30))

    display = overlay(session, [request])

    assert display.time_in == at(1, 8)
    assert display.time_out == at(1, 17, 30)
    assert display.has_pending_edit
    assert display.logs[0].pending_request_id == "r1"
    # the stored log is untouched
    assert log.time_in == at(1, 9)
    assert session.time_in == at(1, 9)


def test_overlay_shows_stored_times_once_decided():
    session = build_sessions([make_log("a", at(1, 9), at(1, 17))])[0]

    for status in ("approved", "rejected"):
        display = overlay(session, [make_request("r1", ["a"], at(1, 8), at(1, 18), status=status)])
        assert display.time_in == at(1, 9)
        assert display.time_out == at(1, 17)
        assert not display.has_pending_edit


def test_overlay_session_request_swaps_outer_edges_only():
    logs = [
        make_log("reg", at(1, 9), at(1, 18)),
        make_log("ot", at(1, 18), at(1, 20), LogType.OVERTIME),
        make_log("ext", at(1, 20), at(1, 21), LogType.EXTENDED_OVERTIME),
    ]
    session = build_sessions(logs)[0]
    request = make_request("r1", ["reg", "ot", "ext"], at(1, 8, 30), at(1, 20, 15))

    display = overlay(session, [request])

    assert display.logs[0].time_in == at(1, 8, 30)
    assert display.logs[0].time_out == at(1, 18)
    assert (display.logs[1].time_in, display.logs[1].time_out) == (at(1, 18), at(1, 20))
    assert display.logs[2].time_out == at(1, 20, 15)
    assert all(d.pending_request_id == "r1" for d in display.logs)


def test_overlay_takes_first_pending_request():
    session = build_sessions([make_log("a", at(1, 9), at(1, 17))])[0]
    requests = [make_request("r1", ["a"], at(1, 8)), make_request("r2", ["a"], at(1, 7))]

    assert overlay(session, requests).time_in == at(1, 8)


def test_find_pending_request():
    requests = [make_request("done", ["a"], status="approved"), make_request("open", ["a"], at(1, 8))]
    assert find_pending_request("a", requests).id == "open"
    assert find_pending_request("b", requests) is None
    assert find_pending_request(None, requests) is None


def test_adjacent_requests_are_grouped():
    logs = [make_log("a", at(1, 9), at(1, 18)), make_log("b", at(1, 18), at(1, 20), LogType.OVERTIME)]
    requests = [make_request("r1", ["a"], at(1, 8)), make_request("r2", ["b"], None, at(1, 19))]

    groups = group_continuous_sessions(requests, logs)

    assert len(groups) == 1
    group = groups[0]
    assert len(group.all_request_ids) == 2
    assert set(group.all_request_ids) == {"r1", "r2"}
    assert group.log_ids == ["a", "b"]
    assert group.is_continuous_session
    assert group.day == date(2024, 1, 1)
    assert (group.original_time_in, group.original_time_out) == (at(1, 9), at(1, 20))
    assert (group.requested_time_in, group.requested_time_out) == (at(1, 8), at(1, 19))
    assert group.status == EditRequestStatus.PENDING


def test_separate_sessions_make_separate_groups():
    logs = [make_log("a", at(1, 9), at(1, 12)), make_log("b", at(1, 13), at(1, 17))]
    requests = [make_request("r1", ["a"], at(1, 8)), make_request("r2", ["b"], at(1, 12, 30))]

    groups = group_continuous_sessions(requests, logs)

    assert [g.all_request_ids for g in groups] == [["r1"], ["r2"]]
    assert not any(g.is_continuous_session for g in groups)


def test_requests_on_different_days_are_not_grouped():
    logs = [make_log("a", at(1, 9), at(1, 17)), make_log("b", at(2, 9), at(2, 17))]
    requests = [make_request("r1", ["a"], at(1, 8)), make_request("r2", ["b"], at(2, 8))]

    assert len(group_continuous_sessions(requests, logs)) == 2


def test_mixed_statuses_leave_group_status_empty():
    logs = [make_log("a", at(1, 9), at(1, 18)), make_log("b", at(1, 18), at(1, 20), LogType.OVERTIME)]
    requests = [make_request("r1", ["a"], at(1, 8)), make_request("r2", ["b"], at(1, 18), status="approved")]

    assert group_continuous_sessions(requests, logs)[0].status is None


def test_dangling_request_becomes_orphan_group():
    logs = [make_log("a", at(1, 9), at(1, 17))]
    requests = [make_request("gone", ["deleted-log"], at(1, 8)), make_request("r1", ["a"], at(1, 8))]

    groups = group_continuous_sessions(requests, logs)

    assert [g.all_request_ids for g in groups] == [["r1"], ["gone"]]
    assert groups[-1].is_orphan
    assert groups[-1].log_ids == []


def test_grouping_nothing():
    assert group_continuous_sessions([], []) == []
