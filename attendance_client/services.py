"""
Resource services for the Attendance Client.

Thin CRUD wrappers over the authenticated API client. They perform no
authentication logic of their own.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from attendance_client.api_client import AttendanceAPIClient
from attendance_client.models import (
    AttendanceFilters, AttendanceRecord, CheckKind, Pagination, parse_records
)

logger = logging.getLogger(__name__)


def _unwrap(body: Dict[str, Any]) -> Any:
    data = body.get('data')
    if isinstance(data, dict) and 'data' in data:
        return data['data']
    return data


class ResourceService:
    """Generic CRUD service for one backend resource path."""

    def __init__(self, client: AttendanceAPIClient, endpoint: str):
        self.client = client
        self.endpoint = '/' + endpoint.strip('/')

    def _item_path(self, item_id: Union[int, str]) -> str:
        return f"{self.endpoint}/{item_id}"

    async def get_all(self, params: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict[str, Any]], Pagination]:
        body = await self.client.get(self.endpoint, params=params)
        data = body.get('data') or {}
        if isinstance(data, list):
            return data, Pagination(total=len(data))
        return data.get('data') or [], Pagination.from_dict(data.get('pagination'))

    async def get_by_id(self, item_id: Union[int, str]) -> Any:
        return _unwrap(await self.client.get(self._item_path(item_id)))

    async def create(self, data: Dict[str, Any]) -> Any:
        return _unwrap(await self.client.post(self.endpoint, json=data))

    async def update(self, item_id: Union[int, str], data: Dict[str, Any]) -> Any:
        return _unwrap(await self.client.put(self._item_path(item_id), json=data))

    async def delete(self, item_id: Union[int, str]) -> None:
        await self.client.delete(self._item_path(item_id))


class AttendanceRecordService(ResourceService):
    """Staff attendance records."""

    def __init__(self, client: AttendanceAPIClient):
        super().__init__(client, "/pointages/personnel")

    async def list(self, filters: Optional[AttendanceFilters] = None) -> List[AttendanceRecord]:
        params = (filters or AttendanceFilters()).to_params()
        body = await self.client.get(self.endpoint, params=params or None)
        items = _unwrap(body) or []
        return parse_records(items if isinstance(items, list) else [])

    async def get(self, record_id: int) -> AttendanceRecord:
        return AttendanceRecord.from_dict(await self.get_by_id(record_id))

    async def create_record(self, record: AttendanceRecord) -> Any:
        return await self.create(record.to_payload())

    async def update(self, item_id: Union[int, str], data: Dict[str, Any]) -> Any:
        # The backend accepts updates as POST on the item path
        return _unwrap(await self.client.post(self._item_path(item_id), json=data))

    async def quick_check(self, personnel_id: int, kind: Union[CheckKind, str]) -> Any:
        """Record an arrival or departure for a staff member at the current time."""
        kind = CheckKind(kind) if not isinstance(kind, CheckKind) else kind
        logger.info(f"Quick {kind.value} check for personnel {personnel_id}")
        body = await self.client.post(f"{self.endpoint}/rapide", json={
            'personnel_id': personnel_id,
            'type': kind.value,
        })
        return body.get('data')


class PersonnelService(ResourceService):
    """Staff directory."""

    def __init__(self, client: AttendanceAPIClient):
        super().__init__(client, "/personnel")

    async def list(
        self,
        search: Optional[str] = None,
        personnel_type: Optional[str] = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        params = {
            'search': search,
            'type_personnel': personnel_type,
            'statut': status,
        }
        return await self.client.get(self.endpoint, params={k: v for k, v in params.items() if v} or None)

    async def all(self) -> Dict[str, Any]:
        return await self.client.get(f"{self.endpoint}/all")

    async def administrative(self) -> List[Dict[str, Any]]:
        body = await self.client.get(f"{self.endpoint}/administratif")
        return (body.get('data') or {}).get('administratif', [])
