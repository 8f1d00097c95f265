from abc import abstractmethod
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.fields import parse_json_list


ALL_DISTRICTS = "All Districts"
UNKNOWN_DISTRICT = "Unknown"


class ActionStatus(str, Enum):
    PENDING = "pending"
    TAKING_ACTION = "taking action"
    COMPLETED = "completed"


# Aid requests share the incident lifecycle.
AidStatus = ActionStatus


class CampStatus(str, Enum):
    OPERATIONAL = "operational"
    FULL = "full"
    CLOSED = "closed"


class StatusBucket(str, Enum):
    ALL = "all"
    CRITICAL = "critical"
    COMPLETED = "completed"
    PENDING = "pending"


class SortKey(str, Enum):
    RECENT = "recent"
    OLDEST = "oldest"
    SEVERITY = "severity"


class ApprovalFilter(str, Enum):
    ALL = "all"
    PENDING = "pending"
    APPROVED = "approved"


class NotifyChannel(str, Enum):
    RELAY = "relay"
    MAILTO = "mailto"


class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        # Edges are inclusive
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


class District(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    bounds: BoundingBox
    center_lat: float
    center_lng: float
    zoom: int = 10


def _default_if_blank(value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    return value


class GeoRecord(BaseModel):
    """
    Fields shared by incidents, aid requests and camps.
    Documents come straight from the record store, so field names follow the
    store (camelCase aliases) and unknown keys are ignored.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    latitude: float
    longitude: float
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    @property
    def created_ms(self) -> int:
        return self.created_at or 0

    @property
    def urgency(self) -> Optional[int]:
        return None

    @property
    @abstractmethod
    def state(self) -> str:
        """Status value used for the pending and completed buckets."""


class Incident(GeoRecord):
    type: str = "Unknown"
    severity: Optional[int] = None
    timestamp: Optional[int] = None
    status: str = "synced"  # sync state reported by the field app
    action_status: ActionStatus = Field(default=ActionStatus.PENDING, alias="actionStatus")
    location: Optional[str] = None
    description: Optional[str] = None
    cloud_image_urls: List[str] = Field(default_factory=list, alias="cloudImageUrls")

    @field_validator("action_status", mode="before")
    @classmethod
    def _default_action_status(cls, value: Any) -> Any:
        return _default_if_blank(value, ActionStatus.PENDING)

    @field_validator("cloud_image_urls", mode="before")
    @classmethod
    def _parse_image_urls(cls, value: Any) -> List[str]:
        return parse_json_list(value)

    @property
    def created_ms(self) -> int:
        return self.timestamp or self.created_at or 0

    @property
    def urgency(self) -> Optional[int]:
        return self.severity

    @property
    def state(self) -> str:
        return self.action_status.value


class AidRequest(GeoRecord):
    aid_types: List[str] = Field(default_factory=list)
    priority_level: Optional[int] = None
    description: Optional[str] = None
    status: str = "synced"
    aid_status: AidStatus = Field(default=AidStatus.PENDING, alias="aidStatus")
    requester_name: Optional[str] = None
    contact_number: Optional[str] = None
    number_of_people: Optional[int] = None

    @field_validator("aid_status", mode="before")
    @classmethod
    def _default_aid_status(cls, value: Any) -> Any:
        return _default_if_blank(value, AidStatus.PENDING)

    @field_validator("aid_types", mode="before")
    @classmethod
    def _parse_aid_types(cls, value: Any) -> List[str]:
        return parse_json_list(value)

    @property
    def urgency(self) -> Optional[int]:
        return self.priority_level

    @property
    def state(self) -> str:
        return self.aid_status.value


class DetentionCamp(GeoRecord):
    name: str
    capacity: int
    current_occupancy: int = 0
    facilities: List[str] = Field(default_factory=list)
    camp_status: CampStatus = Field(default=CampStatus.OPERATIONAL, alias="campStatus")
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    description: Optional[str] = None
    # Field-submitted camps arrive unapproved; anything older than the flag is approved.
    admin_approved: bool = Field(default=True, alias="adminApproved")

    @field_validator("current_occupancy", mode="before")
    @classmethod
    def _default_occupancy(cls, value: Any) -> Any:
        return _default_if_blank(value, 0)

    @field_validator("camp_status", mode="before")
    @classmethod
    def _default_camp_status(cls, value: Any) -> Any:
        return _default_if_blank(value, CampStatus.OPERATIONAL)

    @field_validator("admin_approved", mode="before")
    @classmethod
    def _default_approval(cls, value: Any) -> Any:
        return True if value is None else value

    @field_validator("facilities", mode="before")
    @classmethod
    def _parse_facilities(cls, value: Any) -> List[str]:
        return parse_json_list(value)

    @property
    def state(self) -> str:
        return self.camp_status.value


class Volunteer(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    user_email: Optional[str] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    district: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    availability: List[str] = Field(default_factory=list)
    preferred_tasks: List[str] = Field(default_factory=list)
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    approved: bool = False
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    @field_validator("district", "skills", "availability", "preferred_tasks", mode="before")
    @classmethod
    def _parse_tags(cls, value: Any) -> List[str]:
        return parse_json_list(value)

    @field_validator("approved", mode="before")
    @classmethod
    def _default_approved(cls, value: Any) -> Any:
        return False if value is None else value


class Counts(BaseModel):
    total: int
    critical: int
    completed: int
    pending: int
    taking_action: int


class CampCounts(BaseModel):
    total: int
    operational: int
    full: int
    closed: int
    pending_approval: int
    approved: int


class VolunteerCounts(BaseModel):
    total: int
    pending: int
    approved: int


class StatusUpdate(BaseModel):
    status: ActionStatus


class CampStatusUpdate(BaseModel):
    status: CampStatus


class OccupancyUpdate(BaseModel):
    current_occupancy: int


class ApprovalUpdate(BaseModel):
    approved: bool


class CampCreate(BaseModel):
    name: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    capacity: int = Field(gt=0)
    facilities: List[str] = Field(default_factory=list)
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Camp name is required")
        return value


class SendResult(BaseModel):
    channel: NotifyChannel
    district: str
    to_address: str
    subject: str
    success: bool = True
    mailto_uri: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: int
