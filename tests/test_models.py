from bson import ObjectId

from conftest import at
from models.edit_requests import EditLogRequest
from models.time_logs import LogType, OvertimeStatus, TimeLog


def test_regular_logs_never_carry_an_overtime_status():
    log = TimeLog(user_id="u1", time_in=at(1, 9), log_type="regular", overtime_status="approved")
    assert log.overtime_status == OvertimeStatus.NONE


def test_overtime_logs_default_to_pending():
    for stored in (None, "none"):
        log = TimeLog(user_id="u1", time_in=at(1, 18), log_type="overtime", overtime_status=stored)
        assert log.overtime_status == OvertimeStatus.PENDING


def test_mongo_document_round_trip():
    object_id = ObjectId()
    log = TimeLog(**{"_id": object_id, "user_id": "u1", "time_in": at(1, 9).replace(tzinfo=None),
                     "log_type": "extended_overtime", "status": "completed"})

    assert log.id == str(object_id)
    assert log.time_in == at(1, 9)
    assert log.is_overtime and not log.is_open

    document = log.to_document()
    assert "id" not in document and "_id" not in document
    assert document["log_type"] == "extended_overtime"
    assert document["overtime_status"] == "pending"


def test_edit_request_targets():
    single = EditLogRequest(user_id="u1", log_id="a")
    session = EditLogRequest(user_id="u1", log_ids=["a", "b"], is_continuous_session=True)

    assert single.target_log_ids == ["a"]
    assert session.target_log_ids == ["a", "b"]
    assert TimeLog(user_id="u1", log_type=LogType.OVERTIME).log_type.value == "overtime"
