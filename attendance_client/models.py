"""
Core data models for the Attendance Client.

This module defines the identity record persisted with a session, the JSON
envelope returned by every backend endpoint, and the attendance record types
consumed by the CRUD services.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class Role(Enum):
    """User roles known to the backend; values are the wire names."""
    ADMIN = "admin"
    SECRETARY = "secretaire"
    TEACHER = "enseignant"
    SUPERVISOR = "surveillant"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            # Accept the English member names as well as the wire values
            try:
                return cls[str(value).upper()]
            except KeyError:
                raise ValueError(f"Unknown role: {value!r}")


class AttendanceStatus(Enum):
    """Status of a staff attendance record."""
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "retard"
    LEAVE = "congé"
    SICK = "maladie"


class CheckKind(Enum):
    """Quick check-in/check-out kind."""
    ARRIVAL = "arrivee"
    DEPARTURE = "depart"


@dataclass
class Identity:
    """Profile of the authenticated user."""
    id: int
    username: str
    email: str
    role: Role
    last_name: str = ""
    first_name: str = ""
    personnel_type: str = ""

    def __post_init__(self):
        if not self.username:
            raise ValueError("Username cannot be empty")
        self.role = Role.parse(self.role)

    @property
    def display_name(self) -> str:
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.username

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        """Build an identity from the backend's user record."""
        return cls(
            id=int(data['id']),
            username=data['username'],
            email=data.get('email') or "",
            role=data['role'],
            last_name=data.get('nom') or "",
            first_name=data.get('prenom') or "",
            personnel_type=data.get('type_personnel') or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the backend's user record layout."""
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role.value,
            'nom': self.last_name,
            'prenom': self.first_name,
            'type_personnel': self.personnel_type,
        }


@dataclass
class ApiEnvelope:
    """The `{status, message, data}` wrapper returned by the backend."""
    status: str
    data: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None
    messages: Dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @classmethod
    def from_body(cls, body: Any) -> "ApiEnvelope":
        if not isinstance(body, dict):
            return cls(status="error", message="Unexpected response body")

        data = body.get('data')
        messages = body.get('messages')
        return cls(
            status=str(body.get('status', "")),
            data=data if isinstance(data, dict) else {},
            message=body.get('message'),
            messages={str(k): str(v) for k, v in messages.items()} if isinstance(messages, dict) else {},
        )

    def reason(self, default: str) -> str:
        """Best human-readable failure reason carried by the envelope."""
        if self.message:
            return self.message
        if self.messages:
            return "; ".join(self.messages.values())
        return default


@dataclass
class Pagination:
    """Pagination block of list endpoints."""
    current_page: int = 1
    per_page: int = 0
    total: int = 0
    total_pages: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Pagination":
        data = data or {}
        return cls(
            current_page=int(data.get('current_page', 1)),
            per_page=int(data.get('per_page', 0)),
            total=int(data.get('total', 0)),
            total_pages=int(data.get('total_pages', 0)),
        )


@dataclass
class AttendanceFilters:
    """Query filters for staff attendance listings."""
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    personnel_id: Optional[int] = None
    status: Optional[AttendanceStatus] = None
    personnel_type: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        params = {
            'date_debut': self.date_from,
            'date_fin': self.date_to,
            'personnel_id': str(self.personnel_id) if self.personnel_id else None,
            'statut': self.status.value if self.status else None,
            'type_personnel': self.personnel_type,
        }
        return {k: v for k, v in params.items() if v}


@dataclass
class AttendanceRecord:
    """A staff attendance ("pointage") record."""
    personnel_id: int
    date: str
    status: AttendanceStatus
    arrival_time: Optional[str] = None
    departure_time: Optional[str] = None
    remark: Optional[str] = None
    id: Optional[int] = None
    hours_worked: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttendanceRecord":
        known = {
            'id', 'personnel_id', 'date_pointage', 'heure_arrivee',
            'heure_depart', 'statut', 'heures_travail', 'remarque'
        }
        return cls(
            id=data.get('id'),
            personnel_id=int(data['personnel_id']),
            date=data['date_pointage'],
            status=AttendanceStatus(data['statut']),
            arrival_time=data.get('heure_arrivee'),
            departure_time=data.get('heure_depart'),
            remark=data.get('remarque'),
            hours_worked=data.get('heures_travail'),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            'personnel_id': self.personnel_id,
            'date_pointage': self.date,
            'heure_arrivee': self.arrival_time or "",
            'heure_depart': self.departure_time or "",
            'statut': self.status.value,
        }
        if self.remark:
            payload['remarque'] = self.remark
        return payload


def parse_records(items: List[Dict[str, Any]]) -> List[AttendanceRecord]:
    return [AttendanceRecord.from_dict(item) for item in items]
