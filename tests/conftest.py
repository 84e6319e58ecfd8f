"""
Shared fixtures for the Attendance Client tests.
"""

from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Tuple, Union

import pytest

from attendance_client.api_client import AttendanceAPIClient
from attendance_client.auth.token_storage import MemoryTokenStorage
from attendance_client.http.transport import PendingRequest, Response
from attendance_client.interfaces import ITransport
from attendance_client.models import Identity, Role

ScriptedReply = Union[Response, Exception, Callable[[PendingRequest], Response]]


def envelope(data: Dict[str, Any], status: str = "success", message: str = None) -> Dict[str, Any]:
    body = {'status': status, 'data': data}
    if message:
        body['message'] = message
    return body


def user_record(**overrides) -> Dict[str, Any]:
    record = {
        'id': 1,
        'username': 'alice',
        'email': 'alice@example.org',
        'role': 'admin',
        'nom': 'Martin',
        'prenom': 'Alice',
        'type_personnel': 'administratif',
    }
    record.update(overrides)
    return record


class ScriptedTransport(ITransport):
    """
    Transport double that replays scripted responses per (method, path).

    Every sent request is recorded with a snapshot of its headers and retry
    state, so tests can assert on what actually went over the wire.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Deque[ScriptedReply]] = defaultdict(deque)
        self.sent: List[Dict[str, Any]] = []
        self.common_headers: Dict[str, str] = {}
        self.closed = False

    def script(self, method: str, path: str, *replies: ScriptedReply) -> "ScriptedTransport":
        self.routes[(method, path)].extend(replies)
        return self

    def calls_to(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [c for c in self.sent if c['method'] == method and c['path'] == path]

    def drop_header(self, name: str) -> None:
        self.common_headers.pop(name, None)

    async def send(self, request: PendingRequest) -> Response:
        self.sent.append({
            'method': request.method,
            'path': request.path,
            'headers': dict(request.headers),
            'json': request.json,
            'params': request.params,
            'retried': request.retried,
        })

        replies = self.routes.get((request.method, request.path))
        if not replies:
            raise AssertionError(f"Unscripted request: {request.method} {request.path}")

        # The last reply is sticky so a route can answer any number of calls
        reply = replies.popleft() if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def store():
    return MemoryTokenStorage()


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def client(transport, store):
    return AttendanceAPIClient(store=store, transport=transport)


@pytest.fixture
def alice():
    return Identity(
        id=1,
        username='alice',
        email='alice@example.org',
        role=Role.ADMIN,
        last_name='Martin',
        first_name='Alice',
        personnel_type='administratif',
    )
