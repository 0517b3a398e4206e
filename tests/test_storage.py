"""
Unit tests for the in-memory record store.
"""

from datetime import datetime, timezone

import pytest

from clinic.schemas import (
    AiConversationCreate,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentType,
    ChatMessageCreate,
    ClinicCreate,
    DoctorCreate,
    MedicalNewsCreate,
    SessionStatus,
    TelemedicineSessionCreate,
    UserCreate,
)
from clinic.storage import ClinicStorage
from core.domain import RecordNotFoundError


def _ts(minute: int) -> datetime:
    return datetime(2025, 3, 1, 10, minute, tzinfo=timezone.utc)


def _appointment(**overrides) -> AppointmentCreate:
    fields = {
        "patient_id": "patient-1",
        "doctor_id": "doctor-1",
        "date": _ts(30),
        "type": AppointmentType.TELEMEDICINE,
    }
    fields.update(overrides)
    return AppointmentCreate(**fields)


class TestDefaults:
    def test_doctor_rating_defaults_to_zero(self, storage):
        doctor = storage.create_doctor(DoctorCreate(user_id="u1", specialty="Cardiology"))

        assert doctor.rating == 0
        assert doctor.clinic_id is None
        assert doctor.availability is None

    def test_doctor_rating_is_kept_when_given(self, storage):
        doctor = storage.create_doctor(DoctorCreate(user_id="u1", specialty="Cardiology", rating=4))

        assert doctor.rating == 4

    def test_appointment_duration_defaults_to_thirty(self, storage):
        appointment = storage.create_appointment(_appointment())

        assert appointment.duration == 30
        assert appointment.status == AppointmentStatus.SCHEDULED

    def test_appointment_duration_is_kept_when_given(self, storage):
        appointment = storage.create_appointment(_appointment(duration=45))

        assert appointment.duration == 45

    def test_user_optional_fields_default_to_none(self, storage, clock):
        user = storage.create_user(UserCreate(email="a@b.com", name="A", role="patient"))

        assert user.avatar is None
        assert user.phone is None
        assert user.created_at == clock.current

    def test_session_timestamps_start_empty(self, storage):
        session = storage.create_telemedicine_session(
            TelemedicineSessionCreate(appointment_id="appt-1", room_id="room-1")
        )

        assert session.status == SessionStatus.WAITING
        assert session.started_at is None
        assert session.ended_at is None

    def test_session_created_active_is_stamped_started(self, storage, clock):
        session = storage.create_telemedicine_session(
            TelemedicineSessionCreate(appointment_id="appt-1", room_id="room-1", status=SessionStatus.ACTIVE)
        )

        assert session.status == SessionStatus.ACTIVE
        assert session.started_at == clock.current
        assert session.ended_at is None

    def test_session_created_ended_is_stamped_both(self, storage):
        session = storage.create_telemedicine_session(
            TelemedicineSessionCreate(appointment_id="appt-1", room_id="room-1", status=SessionStatus.ENDED)
        )

        assert session.started_at is not None
        assert session.started_at == session.ended_at
        assert storage.get_telemedicine_session(session.id) == session

    def test_sample_news_is_seeded(self):
        seeded = ClinicStorage(seed_sample_news=True)

        titles = {article.title for article in seeded.get_medical_news()}
        assert "New Guidelines for Diabetes Management" in titles
        assert len(titles) == 2


class TestRoundTrip:
    @pytest.mark.parametrize(
        "create, get, data",
        [
            ("create_user", "get_user", UserCreate(email="a@b.com", name="A", role="patient", phone="555")),
            ("create_doctor", "get_doctor", DoctorCreate(user_id="u1", specialty="Dermatology", fee=80,
                                                        availability={"monday": ["09:00", "09:30"]})),
            ("create_clinic", "get_clinic", ClinicCreate(user_id="u2", name="Downtown Clinic", address="1 Main St")),
            ("create_appointment", "get_appointment", _appointment(notes="Chest discomfort")),
            ("create_telemedicine_session", "get_telemedicine_session",
             TelemedicineSessionCreate(appointment_id="appt-1", room_id="room-9")),
        ],
    )
    def test_create_then_get_returns_input_plus_generated_fields(self, storage, create, get, data):
        record = getattr(storage, create)(data)
        fetched = getattr(storage, get)(record.id)

        assert fetched == record
        assert record.id
        for name, value in data.model_dump(exclude_none=True).items():
            assert getattr(fetched, name) == value

    def test_chat_message_round_trip(self, storage):
        message = storage.create_chat_message(
            ChatMessageCreate(session_id="s1", sender_id="u1", message="Hello doctor")
        )

        assert storage.get_chat_messages_by_session("s1") == [message]
        assert message.timestamp is not None

    def test_news_round_trip(self, storage):
        news = storage.create_medical_news(MedicalNewsCreate(title="Flu season", source="CDC"))

        assert storage.get_medical_news() == [news]
        assert news.summary is None

    def test_ai_conversation_round_trip(self, storage):
        conversation = storage.create_ai_conversation(AiConversationCreate(
            user_id="u1",
            messages=[{"role": "user", "content": "Hi", "timestamp": "2025-03-01T10:00:00Z"}],
        ))

        assert storage.get_ai_conversations_by_user("u1") == [conversation]
        assert conversation.messages[0].content == "Hi"

    def test_ids_are_unique(self, storage):
        ids = {storage.create_clinic(ClinicCreate(user_id="u", name=f"C{i}")).id for i in range(20)}

        assert len(ids) == 20

    def test_get_unknown_id_returns_none(self, storage):
        assert storage.get_user("missing") is None
        assert storage.get_appointment("missing") is None
        assert storage.get_telemedicine_session("missing") is None


class TestUpdates:
    def test_update_changes_only_given_fields(self, storage):
        before = storage.create_appointment(_appointment(notes="Initial"))

        after = storage.update_appointment(before.id, {"status": AppointmentStatus.COMPLETED})

        assert after.status == AppointmentStatus.COMPLETED
        assert after.model_dump(exclude={"status"}) == before.model_dump(exclude={"status"})
        assert storage.get_appointment(before.id) == after

    def test_update_leaves_previously_returned_record_untouched(self, storage):
        before = storage.create_appointment(_appointment())

        storage.update_appointment(before.id, {"status": AppointmentStatus.CANCELLED})

        assert before.status == AppointmentStatus.SCHEDULED

    def test_update_unknown_appointment_raises_not_found(self, storage):
        with pytest.raises(RecordNotFoundError) as excinfo:
            storage.update_appointment("missing", {"status": AppointmentStatus.COMPLETED})

        assert str(excinfo.value) == "Appointment not found"
        assert excinfo.value.record_id == "missing"

    def test_update_unknown_session_raises_not_found(self, storage):
        with pytest.raises(RecordNotFoundError, match="Telemedicine session not found"):
            storage.update_telemedicine_session("missing", {"status": SessionStatus.ACTIVE})

    def test_update_with_unknown_field_leaves_record_untouched(self, storage):
        appointment = storage.create_appointment(_appointment())

        with pytest.raises(ValueError):
            storage.update_appointment(appointment.id, {"colour": "blue"})

        assert storage.get_appointment(appointment.id) == appointment


class TestQueries:
    def test_chat_messages_sorted_by_timestamp_regardless_of_insertion(self, storage, clock):
        clock.queue(_ts(2), _ts(3), _ts(1))
        second = storage.create_chat_message(ChatMessageCreate(session_id="s1", sender_id="u1", message="two"))
        third = storage.create_chat_message(ChatMessageCreate(session_id="s1", sender_id="u2", message="three"))
        first = storage.create_chat_message(ChatMessageCreate(session_id="s1", sender_id="u1", message="one"))

        assert storage.get_chat_messages_by_session("s1") == [first, second, third]

    def test_chat_messages_filtered_by_session(self, storage):
        storage.create_chat_message(ChatMessageCreate(session_id="s1", sender_id="u1", message="mine"))
        storage.create_chat_message(ChatMessageCreate(session_id="s2", sender_id="u1", message="other"))
        storage.create_chat_message(ChatMessageCreate(sender_id="u1", message="no session"))

        assert [m.message for m in storage.get_chat_messages_by_session("s1")] == ["mine"]

    def test_news_sorted_newest_first(self, storage, clock):
        clock.queue(_ts(1), _ts(5), _ts(3))
        for title in ("old", "new", "middle"):
            storage.create_medical_news(MedicalNewsCreate(title=title))

        assert [n.title for n in storage.get_medical_news()] == ["new", "middle", "old"]

    def test_ai_conversations_sorted_newest_first(self, storage, clock):
        clock.queue(_ts(1), _ts(9))
        older = storage.create_ai_conversation(AiConversationCreate(user_id="u1"))
        newer = storage.create_ai_conversation(AiConversationCreate(user_id="u1"))
        storage.create_ai_conversation(AiConversationCreate(user_id="u2"))

        assert storage.get_ai_conversations_by_user("u1") == [newer, older]

    def test_appointments_by_patient_and_doctor_keep_insertion_order(self, storage):
        a1 = storage.create_appointment(_appointment(patient_id="p1", doctor_id="d1"))
        a2 = storage.create_appointment(_appointment(patient_id="p2", doctor_id="d1"))
        a3 = storage.create_appointment(_appointment(patient_id="p1", doctor_id="d2"))

        assert storage.get_appointments_by_patient("p1") == [a1, a3]
        assert storage.get_appointments_by_doctor("d1") == [a1, a2]

    def test_doctors_by_clinic(self, storage):
        in_clinic = storage.create_doctor(DoctorCreate(user_id="u1", specialty="ENT", clinic_id="c1"))
        storage.create_doctor(DoctorCreate(user_id="u2", specialty="ENT"))

        assert storage.get_doctors_by_clinic("c1") == [in_clinic]
        assert len(storage.get_all_doctors()) == 2


class TestEmailUniqueness:
    def test_lookup_by_email(self, storage):
        user = storage.create_user(UserCreate(email="a@b.com", name="A", role="patient"))

        assert storage.get_user_by_email("a@b.com") == user
        assert storage.get_user_by_email("nobody@b.com") is None

    def test_store_itself_does_not_enforce_unique_email(self, storage):
        # uniqueness is checked by the HTTP boundary, see test_api
        storage.create_user(UserCreate(email="a@b.com", name="A", role="patient"))
        storage.create_user(UserCreate(email="a@b.com", name="B", role="doctor"))

        assert len(storage.users) == 2
