import logging
from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models.edit_requests import EditLogRequest, EditRequestStatus
from models.time_logs import TimeLog
from schemas.session import DisplayLog, DisplaySession, Session, SessionGroup
from utils.session_utils import DEFAULT_TOLERANCE, build_sessions
from utils.time_utils import local_date

logger = logging.getLogger(__name__)


def find_pending_request(log_id: Optional[str], requests: Iterable[EditLogRequest]) -> Optional[EditLogRequest]:
    """First pending request that targets the log, if any."""
    if log_id is None:
        return None
    for request in requests:
        if request.status == EditRequestStatus.PENDING and log_id in request.target_log_ids:
            return request
    return None


def overlay(session: Session, requests: Iterable[EditLogRequest]) -> DisplaySession:
    """
    Show pending edit requests on top of a session without touching its logs.

    A request that targets a single log swaps both of that log's times. A
    continuous-session request swaps the time in of the earliest log it
    targets and the time out of the latest one.
    """
    requests = list(requests)
    display_logs = [DisplayLog(log=log, time_in=log.time_in, time_out=log.time_out) for log in session.logs]

    for index, log in enumerate(session.logs):
        request = find_pending_request(log.id, requests)
        if request is None:
            continue

        targeted = [i for i, other in enumerate(session.logs) if other.id in request.target_log_ids]
        display = display_logs[index]
        display.pending_request_id = request.id

        if request.requested_time_in is not None and index == targeted[0]:
            display.time_in = request.requested_time_in
        if request.requested_time_out is not None and index == targeted[-1]:
            display.time_out = request.requested_time_out

    return DisplaySession(
        session=session,
        logs=display_logs,
        time_in=display_logs[0].time_in if display_logs else None,
        time_out=display_logs[-1].time_out if display_logs else None,
        has_pending_edit=any(display.has_pending_edit for display in display_logs),
    )


def _group_status(requests: Sequence[EditLogRequest]) -> Optional[EditRequestStatus]:
    statuses = {request.status for request in requests}
    return statuses.pop() if len(statuses) == 1 else None


def _make_group(
    requests: List[EditLogRequest],
    logs: List[TimeLog],
    tz_name: str,
    is_orphan: bool = False,
) -> SessionGroup:
    requested_in = [r.requested_time_in for r in requests if r.requested_time_in is not None]
    requested_out = [r.requested_time_out for r in requests if r.requested_time_out is not None]

    if logs:
        original_in = logs[0].time_in
        original_out = logs[-1].time_out
    else:
        original_in = min((r.original_time_in for r in requests if r.original_time_in), default=None)
        original_out = max((r.original_time_out for r in requests if r.original_time_out), default=None)

    return SessionGroup(
        user_id=requests[0].user_id,
        day=local_date(original_in or (requested_in[0] if requested_in else None), tz_name),
        requests=requests,
        all_request_ids=[r.id for r in requests],
        log_ids=[log.id for log in logs],
        original_time_in=original_in,
        original_time_out=original_out,
        requested_time_in=min(requested_in) if requested_in else None,
        requested_time_out=max(requested_out) if requested_out else None,
        status=_group_status(requests),
        is_continuous_session=len(logs) > 1 or any(r.is_continuous_session for r in requests),
        is_orphan=is_orphan,
    )


def group_continuous_sessions(
    requests: Iterable[EditLogRequest],
    logs: Iterable[TimeLog],
    tz_name: str = "UTC",
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> List[SessionGroup]:
    """Group edit requests whose logs form one continuous session.

    Requests are bucketed per user and local date, their logs are chained
    with the session builder, and every request touching the same session
    lands in one group, so an approve / reject / revert on the group covers
    all of them. Requests whose logs no longer exist come back as single
    request orphan groups.
    """
    logs_by_id: Dict[str, TimeLog] = {log.id: log for log in logs if log.id is not None}

    buckets: Dict[Tuple[str, object], List[Tuple[EditLogRequest, List[TimeLog]]]] = defaultdict(list)
    orphans: List[EditLogRequest] = []

    for request in requests:
        resolved = [logs_by_id[log_id] for log_id in request.target_log_ids if log_id in logs_by_id]
        if not resolved:
            logger.warning(f"Edit request {request.id} targets logs that no longer exist: {request.target_log_ids}")
            orphans.append(request)
            continue
        day = local_date(resolved[0].time_in or resolved[0].time_out, tz_name)
        buckets[(request.user_id, day)].append((request, resolved))

    groups: List[SessionGroup] = []
    for entries in buckets.values():
        day_logs = {log.id: log for _, resolved in entries for log in resolved}
        sessions = build_sessions(day_logs.values(), tolerance=tolerance)
        session_of_log = {log.id: index for index, session in enumerate(sessions) for log in session.logs}

        by_session: Dict[int, List[EditLogRequest]] = defaultdict(list)
        for request, resolved in entries:
            by_session[session_of_log[resolved[0].id]].append(request)

        for index, session_requests in by_session.items():
            groups.append(_make_group(session_requests, sessions[index].logs, tz_name))

    groups.sort(key=lambda group: (group.original_time_in is None, group.original_time_in or 0))
    groups.extend(_make_group([request], [], tz_name, is_orphan=True) for request in orphans)
    return groups
