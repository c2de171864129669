"""
Typed records for rows returned by the backend.

Every row enters the application through a ``from_row`` constructor so that
missing required columns surface as a ``TransportError`` at the boundary
instead of a ``KeyError`` deep inside a page.
"""
from dataclasses import dataclass, fields
from typing import Optional

from errors import TransportError


def normalize_phone(phone):
    """Strip hyphens and surrounding whitespace from a phone number."""
    if phone is None:
        return ""
    return str(phone).replace("-", "").strip()


def storage_path(public_url):
    """Object path inside its bucket, recovered from a public storage URL."""
    marker = "/object/public/"
    if not public_url or marker not in public_url:
        return None
    _, _, tail = public_url.partition(marker)
    _, _, path = tail.partition("/")
    return path or None


def _require(row, table, *names):
    if row is None:
        raise TransportError()
    missing = [name for name in names if row.get(name) in (None, "")]
    if missing:
        raise TransportError(f"Unexpected {table} data from the server (missing {', '.join(missing)}).")


def _pick(cls, row):
    known = {f.name for f in fields(cls)}
    return {key: value for key, value in row.items() if key in known}


@dataclass
class SessionUser:
    """The signed-in participant as cached on the client. Never holds a credential."""

    id: str
    name: str
    phone_number: Optional[str] = None
    school: Optional[str] = None
    major: Optional[str] = None
    generation: Optional[str] = None
    gender: Optional[str] = None
    role: Optional[str] = None

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
            raise ValueError("Stored session is missing id or name")
        return cls(**_pick(cls, data))


@dataclass
class Identity:
    """A participant record from the ``users`` table."""

    id: str
    name: str
    phone_number: Optional[str] = None
    password_hash: Optional[str] = None
    school: Optional[str] = None
    major: Optional[str] = None
    generation: Optional[str] = None
    gender: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
    ws_group: Optional[str] = None
    birth_date: Optional[str] = None
    program: Optional[str] = None
    profile_image_url: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "user", "id", "name")
        identity = cls(**_pick(cls, row))
        identity.id = str(identity.id)
        return identity

    @property
    def is_registered(self):
        return bool(self.password_hash)

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def profile_image_path(self):
        return storage_path(self.profile_image_url)

    def phone_matches(self, phone):
        return normalize_phone(self.phone_number) == normalize_phone(phone)

    def summary(self):
        """School, major and cohort on one line, for confirmation screens."""
        parts = [self.school or "", self.major or ""]
        if self.generation:
            parts.append(f"cohort {self.generation}")
        return " ".join(part for part in parts if part)

    def to_session(self):
        return SessionUser(
            id=self.id,
            name=self.name,
            phone_number=self.phone_number,
            school=self.school,
            major=self.major,
            generation=self.generation,
            gender=self.gender,
            role=self.role,
        )


@dataclass
class Event:
    id: str
    title: str
    event_date: str
    start_time: str
    end_time: str
    location: Optional[str] = None
    description: Optional[str] = None
    order_index: Optional[int] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "event", "id", "title", "event_date", "start_time", "end_time")
        return cls(**_pick(cls, row))


@dataclass
class Notice:
    id: str
    title: str
    content: str
    is_important: bool = False
    author_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "notice", "id", "title", "content")
        notice = cls(**_pick(cls, row))
        notice.is_important = bool(notice.is_important)
        return notice


@dataclass
class Faq:
    id: str
    question: str
    answer: str
    category: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "FAQ", "id", "question", "answer")
        return cls(**_pick(cls, row))


@dataclass
class Introduction:
    user_id: str
    keywords: str = ""
    interests: str = ""
    bucketlist: str = ""
    stress_relief: str = ""
    foundation_activity: str = ""
    id: Optional[str] = None
    name: Optional[str] = None
    school: Optional[str] = None
    major: Optional[str] = None
    birth_date: Optional[str] = None
    location: Optional[str] = None
    mbti: Optional[str] = None
    submitted_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "introduction", "user_id")
        return cls(**_pick(cls, row))


@dataclass
class Photo:
    id: str
    image_url: str
    user_id: str
    description: Optional[str] = None
    likes_count: int = 0
    uploaded_at: Optional[str] = None
    uploader_name: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "photo", "id", "image_url", "user_id")
        photo = cls(**_pick(cls, row))
        photo.likes_count = int(photo.likes_count or 0)
        uploader = row.get("users")
        if isinstance(uploader, dict):
            photo.uploader_name = uploader.get("name")
        return photo

    @property
    def storage_path(self):
        return storage_path(self.image_url)


@dataclass
class BusAssignment:
    user_name: str
    id: Optional[str] = None
    user_id: Optional[str] = None
    departure_bus: Optional[str] = None
    departure_time: Optional[str] = None
    departure_location: Optional[str] = None
    return_bus: Optional[str] = None
    return_time: Optional[str] = None
    arrival_location: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "bus assignment", "user_name")
        return cls(**_pick(cls, row))


@dataclass
class ActivityAssignment:
    user_name: str
    program_type: str
    id: Optional[str] = None
    user_id: Optional[str] = None
    session_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "activity assignment", "user_name", "program_type")
        return cls(**_pick(cls, row))


@dataclass
class RoomAssignment:
    room_id: str
    user_name: Optional[str] = None
    user_id: Optional[str] = None
    room_number: Optional[str] = None
    building_name: Optional[str] = None
    capacity: Optional[int] = None
    room_type: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "room assignment", "room_id")
        assignment = cls(**_pick(cls, row))
        room = row.get("rooms")
        if isinstance(room, dict):
            assignment.room_number = assignment.room_number or room.get("room_number")
            assignment.building_name = assignment.building_name or room.get("building_name")
            assignment.capacity = assignment.capacity or room.get("capacity")
            assignment.room_type = room.get("Type")
        return assignment


@dataclass
class Roommate:
    user_name: str
    school: Optional[str] = None
    major: Optional[str] = None
    generation: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        _require(row, "roommate", "user_name")
        return cls(**_pick(cls, row))


@dataclass
class UserFilters:
    """Server-side filters for the participant list."""

    school: Optional[str] = None
    major: Optional[str] = None
    generation: Optional[str] = None
    role: Optional[str] = None
    search: Optional[str] = None
