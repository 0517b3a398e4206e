"""
Clinic Entity Schemas.

Pydantic models for every entity the record store holds, plus the insert
and update models the HTTP boundary validates request bodies against.

Wire format uses camelCase (``patientId``, ``createdAt``); Python code uses
snake_case attribute names. Both spellings are accepted on input.

Each insert model is wrapped in an ``EntitySchema`` so routes can reject a
malformed body with a structured ``SchemaValidationError`` before anything
reaches the store.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from core.domain import SchemaValidationError, ValidationError, Validator


# =============================================================================
# ENUMERATIONS
# =============================================================================

class UserRole(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    CLINIC = "clinic"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    IN_PROGRESS = "in_progress"


class AppointmentType(str, Enum):
    IN_PERSON = "in_person"
    TELEMEDICINE = "telemedicine"


class SessionStatus(str, Enum):
    """Telemedicine session status. Declaration order is the only legal progression."""
    WAITING = "waiting"
    ACTIVE = "active"
    ENDED = "ended"


# =============================================================================
# BASE MODEL
# =============================================================================

class ClinicModel(BaseModel):
    """Base model: camelCase aliases on the wire, immutable once built."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# =============================================================================
# USERS, DOCTORS, CLINICS
# =============================================================================

class UserCreate(ClinicModel):
    email: EmailStr
    name: str = Field(min_length=1)
    role: UserRole
    avatar: Optional[str] = None
    phone: Optional[str] = None


class User(UserCreate):
    id: str
    created_at: datetime


class DoctorCreate(ClinicModel):
    user_id: str = Field(min_length=1)
    specialty: str = Field(min_length=1)
    experience: Optional[int] = Field(default=None, ge=0)
    fee: Optional[int] = Field(default=None, ge=0)
    rating: Optional[int] = Field(default=None, ge=0, le=5)
    # weekday -> list of "HH:MM" slots
    availability: Optional[Dict[str, List[str]]] = None
    clinic_id: Optional[str] = None


class Doctor(DoctorCreate):
    id: str
    rating: int = Field(default=0, ge=0, le=5)


class ClinicCreate(ClinicModel):
    user_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None


class Clinic(ClinicCreate):
    id: str


# =============================================================================
# APPOINTMENTS AND TELEMEDICINE
# =============================================================================

class AppointmentCreate(ClinicModel):
    patient_id: str = Field(min_length=1)
    doctor_id: str = Field(min_length=1)
    clinic_id: Optional[str] = None
    date: datetime
    duration: Optional[int] = Field(default=None, gt=0)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    type: AppointmentType
    notes: Optional[str] = None
    session_notes: Optional[str] = None


class Appointment(AppointmentCreate):
    id: str
    duration: int = Field(default=30, gt=0)
    created_at: datetime


class AppointmentUpdate(ClinicModel):
    """Partial update; only fields present in the body are applied."""
    model_config = ConfigDict(extra="forbid")

    status: Optional[AppointmentStatus] = None
    date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = None
    session_notes: Optional[str] = None


class TelemedicineSessionCreate(ClinicModel):
    appointment_id: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    status: SessionStatus = SessionStatus.WAITING


class TelemedicineSession(TelemedicineSessionCreate):
    id: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class SessionStatusUpdate(ClinicModel):
    status: SessionStatus


# =============================================================================
# MESSAGING, NEWS, AI CONVERSATIONS
# =============================================================================

class ChatMessageCreate(ClinicModel):
    session_id: Optional[str] = None
    sender_id: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ChatMessage(ChatMessageCreate):
    id: str
    timestamp: datetime


class MedicalNewsCreate(ClinicModel):
    title: str = Field(min_length=1)
    summary: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    source: Optional[str] = None


class MedicalNews(MedicalNewsCreate):
    id: str
    published_at: datetime


class ConversationTurn(ClinicModel):
    """
    One turn of an assistant conversation.

    Web clients send only ``isAI`` to flag the assistant's turns; a turn with
    neither ``role`` nor ``isAI`` is the user's.
    """
    role: str = "user"
    content: str
    is_ai: Optional[bool] = Field(default=None, alias="isAI")
    timestamp: Optional[str] = None


class AiConversationCreate(ClinicModel):
    user_id: str = Field(min_length=1)
    messages: List[ConversationTurn] = Field(default_factory=list)


class AiConversation(AiConversationCreate):
    id: str
    created_at: datetime


# =============================================================================
# AI ASSISTANT REQUESTS
# =============================================================================

class AiChatRequest(ClinicModel):
    message: str = Field(min_length=1)
    history: List[ConversationTurn] = Field(default_factory=list)

    @field_validator("history", mode="before")
    @classmethod
    def null_history_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class AiChatResponse(ClinicModel):
    message: str


class TextRequest(ClinicModel):
    text: str = Field(min_length=1)


class SentimentResult(ClinicModel):
    rating: int = Field(ge=1, le=5)
    confidence: float = Field(ge=0, le=1)


class SummaryResponse(ClinicModel):
    summary: str


# =============================================================================
# SCHEMA VALIDATORS
# =============================================================================

M = TypeVar("M", bound=BaseModel)


def _convert_errors(exc: PydanticValidationError) -> List[ValidationError]:
    errors = []
    for error in exc.errors():
        errors.append(ValidationError(
            field=".".join(str(loc) for loc in error["loc"]) or "body",
            message=error["msg"],
            code=error["type"],
        ))
    return errors


class EntitySchema(Validator, Generic[M]):
    """
    Validator for one entity's request body.

    Wraps a pydantic model so a body can be checked (``validate``) or turned
    into a typed object (``parse``) before it reaches the record store.
    """

    def __init__(self, entity: str, model: Type[M]):
        """
        Args:
            entity: Name used in error messages ("Invalid <entity> data")
            model: The pydantic model the body must satisfy
        """
        self.entity = entity
        self.model = model

    def validate(self, data: Any) -> List[ValidationError]:
        if not isinstance(data, dict):
            return [ValidationError(field="body", message="Expected a JSON object", code="type_error")]
        try:
            self.model.model_validate(data)
        except PydanticValidationError as exc:
            return _convert_errors(exc)
        return []

    def parse(self, data: Any) -> M:
        """
        Validate and build the model.

        Raises:
            SchemaValidationError: With every field error found
        """
        if not isinstance(data, dict):
            raise SchemaValidationError(self.entity, self.validate(data))
        try:
            return self.model.model_validate(data)
        except PydanticValidationError as exc:
            raise SchemaValidationError(self.entity, _convert_errors(exc)) from exc


USER_SCHEMA = EntitySchema("user", UserCreate)
DOCTOR_SCHEMA = EntitySchema("doctor", DoctorCreate)
CLINIC_SCHEMA = EntitySchema("clinic", ClinicCreate)
APPOINTMENT_SCHEMA = EntitySchema("appointment", AppointmentCreate)
APPOINTMENT_UPDATE_SCHEMA = EntitySchema("appointment", AppointmentUpdate)
SESSION_SCHEMA = EntitySchema("session", TelemedicineSessionCreate)
SESSION_STATUS_SCHEMA = EntitySchema("session", SessionStatusUpdate)
CHAT_MESSAGE_SCHEMA = EntitySchema("message", ChatMessageCreate)
NEWS_SCHEMA = EntitySchema("news", MedicalNewsCreate)
CONVERSATION_SCHEMA = EntitySchema("conversation", AiConversationCreate)
AI_CHAT_SCHEMA = EntitySchema("chat", AiChatRequest)
TEXT_SCHEMA = EntitySchema("text", TextRequest)
