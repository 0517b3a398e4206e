"""
Clinic Record Store.

In-memory, authoritative holder of every clinic entity. One ``ClinicStorage``
is built at application startup and handed to every request handler; there
is no module-level instance.

Creation fills documented defaults (appointment duration 30, doctor rating 0,
timestamps now) and stores the finished record in one step, so readers never
see a half-built record. Lookups return ``None`` for unknown ids; updates
raise ``RecordNotFoundError``. Records are never deleted.

Email uniqueness is NOT enforced here: the HTTP boundary checks
``get_user_by_email`` before creating a user.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.data import InMemoryRepository, QueryOptions
from core.domain import utc_now

from .domain import DEFAULT_APPOINTMENT_DURATION, SessionLifecycle, clamp_rating
from .schemas import (
    AiConversation,
    AiConversationCreate,
    Appointment,
    AppointmentCreate,
    ChatMessage,
    ChatMessageCreate,
    Clinic,
    ClinicCreate,
    Doctor,
    DoctorCreate,
    MedicalNews,
    MedicalNewsCreate,
    SessionStatus,
    TelemedicineSession,
    TelemedicineSessionCreate,
    User,
    UserCreate,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SAMPLE DATA
# =============================================================================

SAMPLE_NEWS = [
    {
        "title": "Latest Breakthrough in Heart Disease Treatment",
        "summary": (
            "Researchers have discovered a new minimally invasive procedure that "
            "significantly reduces recovery time for cardiac patients."
        ),
        "content": "Full article content here...",
        "image_url": "https://images.unsplash.com/photo-1576091160399-112ba8d25d1f?w=400&h=200&fit=crop",
        "source": "Medical Journal",
    },
    {
        "title": "New Guidelines for Diabetes Management",
        "summary": (
            "Updated recommendations from the American Diabetes Association for "
            "improved patient outcomes."
        ),
        "content": "Full article content here...",
        "image_url": "https://images.unsplash.com/photo-1582750433449-648ed127bb54?w=400&h=200&fit=crop",
        "source": "ADA",
    },
]


def generate_id() -> str:
    """Opaque unique identifier for a new record."""
    return str(uuid.uuid4())


class ClinicStorage:
    """Typed create/read/update operations over one repository per entity."""

    def __init__(
        self,
        seed_sample_news: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize empty collections.

        Args:
            seed_sample_news: Populate the news feed with sample articles
            clock: Source of creation timestamps (overridable in tests)
        """
        self._clock = clock

        self.users: InMemoryRepository[User] = InMemoryRepository("User")
        self.doctors: InMemoryRepository[Doctor] = InMemoryRepository("Doctor")
        self.clinics: InMemoryRepository[Clinic] = InMemoryRepository("Clinic")
        self.appointments: InMemoryRepository[Appointment] = InMemoryRepository("Appointment")
        self.telemedicine_sessions: InMemoryRepository[TelemedicineSession] = InMemoryRepository(
            "Telemedicine session"
        )
        self.chat_messages: InMemoryRepository[ChatMessage] = InMemoryRepository("Chat message")
        self.medical_news: InMemoryRepository[MedicalNews] = InMemoryRepository("Medical news")
        self.ai_conversations: InMemoryRepository[AiConversation] = InMemoryRepository("AI conversation")

        if seed_sample_news:
            self._seed_sample_news()

    def _seed_sample_news(self):
        for article in SAMPLE_NEWS:
            self.create_medical_news(MedicalNewsCreate(**article))
        logger.info(f"Seeded {len(SAMPLE_NEWS)} sample news articles")

    # =========================================================================
    # USER OPERATIONS
    # =========================================================================

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get_by_id(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        matches = self.users.find(QueryOptions(filters={"email": email}, limit=1))
        return matches[0] if matches else None

    def create_user(self, data: UserCreate) -> User:
        user = User(**data.model_dump(), id=generate_id(), created_at=self._clock())
        return self.users.add(user)

    # =========================================================================
    # DOCTOR OPERATIONS
    # =========================================================================

    def get_all_doctors(self) -> List[Doctor]:
        return self.doctors.get_all()

    def get_doctor(self, doctor_id: str) -> Optional[Doctor]:
        return self.doctors.get_by_id(doctor_id)

    def get_doctors_by_clinic(self, clinic_id: str) -> List[Doctor]:
        return self.doctors.find(QueryOptions(filters={"clinic_id": clinic_id}))

    def create_doctor(self, data: DoctorCreate) -> Doctor:
        fields = data.model_dump()
        fields["rating"] = clamp_rating(fields.get("rating"))
        doctor = Doctor(**fields, id=generate_id())
        return self.doctors.add(doctor)

    # =========================================================================
    # CLINIC OPERATIONS
    # =========================================================================

    def get_clinic(self, clinic_id: str) -> Optional[Clinic]:
        return self.clinics.get_by_id(clinic_id)

    def create_clinic(self, data: ClinicCreate) -> Clinic:
        clinic = Clinic(**data.model_dump(), id=generate_id())
        return self.clinics.add(clinic)

    # =========================================================================
    # APPOINTMENT OPERATIONS
    # =========================================================================

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self.appointments.get_by_id(appointment_id)

    def get_appointments_by_patient(self, patient_id: str) -> List[Appointment]:
        return self.appointments.find(QueryOptions(filters={"patient_id": patient_id}))

    def get_appointments_by_doctor(self, doctor_id: str) -> List[Appointment]:
        return self.appointments.find(QueryOptions(filters={"doctor_id": doctor_id}))

    def create_appointment(self, data: AppointmentCreate) -> Appointment:
        fields = data.model_dump()
        if fields.get("duration") is None:
            fields["duration"] = DEFAULT_APPOINTMENT_DURATION
        appointment = Appointment(**fields, id=generate_id(), created_at=self._clock())
        return self.appointments.add(appointment)

    def update_appointment(self, appointment_id: str, updates: Dict[str, Any]) -> Appointment:
        """
        Merge ``updates`` into an appointment.

        Raises:
            RecordNotFoundError: If the appointment does not exist
        """
        return self.appointments.update(appointment_id, updates)

    # =========================================================================
    # TELEMEDICINE SESSION OPERATIONS
    # =========================================================================

    def get_telemedicine_session(self, session_id: str) -> Optional[TelemedicineSession]:
        return self.telemedicine_sessions.get_by_id(session_id)

    def create_telemedicine_session(self, data: TelemedicineSessionCreate) -> TelemedicineSession:
        """
        Open a session. A session created past ``waiting`` gets the same
        timestamps it would have received by moving there with an update.
        """
        session = TelemedicineSession(
            **data.model_dump(exclude={"status"}),
            id=generate_id(),
            status=SessionStatus.WAITING,
        )
        if data.status != SessionStatus.WAITING:
            updates = SessionLifecycle().transition(session, data.status, now=self._clock())
            session = session.model_copy(update=updates)
        return self.telemedicine_sessions.add(session)

    def update_telemedicine_session(self, session_id: str, updates: Dict[str, Any]) -> TelemedicineSession:
        """
        Merge ``updates`` into a telemedicine session.

        Raises:
            RecordNotFoundError: If the session does not exist
        """
        return self.telemedicine_sessions.update(session_id, updates)

    # =========================================================================
    # CHAT MESSAGE OPERATIONS
    # =========================================================================

    def create_chat_message(self, data: ChatMessageCreate) -> ChatMessage:
        message = ChatMessage(**data.model_dump(), id=generate_id(), timestamp=self._clock())
        return self.chat_messages.add(message)

    def get_chat_messages_by_session(self, session_id: str) -> List[ChatMessage]:
        """Messages for a session, oldest first."""
        return self.chat_messages.find(QueryOptions(
            filters={"session_id": session_id},
            order_by="timestamp",
        ))

    # =========================================================================
    # MEDICAL NEWS OPERATIONS
    # =========================================================================

    def get_medical_news(self) -> List[MedicalNews]:
        """All articles, newest first."""
        return self.medical_news.find(QueryOptions(order_by="published_at", order_desc=True))

    def create_medical_news(self, data: MedicalNewsCreate) -> MedicalNews:
        news = MedicalNews(**data.model_dump(), id=generate_id(), published_at=self._clock())
        return self.medical_news.add(news)

    # =========================================================================
    # AI CONVERSATION OPERATIONS
    # =========================================================================

    def create_ai_conversation(self, data: AiConversationCreate) -> AiConversation:
        conversation = AiConversation(**data.model_dump(), id=generate_id(), created_at=self._clock())
        return self.ai_conversations.add(conversation)

    def get_ai_conversations_by_user(self, user_id: str) -> List[AiConversation]:
        """Conversations for a user, newest first."""
        return self.ai_conversations.find(QueryOptions(
            filters={"user_id": user_id},
            order_by="created_at",
            order_desc=True,
        ))
