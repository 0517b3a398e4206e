"""
HTTP and WebSocket routes for the clinic backend.

Every mutating endpoint runs the request body through its entity schema
before the record store is touched. Domain errors are translated into JSON
responses by the exception handlers registered in ``register_exception_handlers``:

- SchemaValidationError / TransitionError -> 400
- AuthenticationError -> 401
- RecordNotFoundError on update -> 500 with the entity in ``error``
- AssistantError -> 500
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, WebSocket, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from auth import IdentityProvider, LoginRequest, LoginResponse, RegisterRequest, extract_token
from core.domain import (
    AssistantError,
    AuthenticationError,
    RecordNotFoundError,
    SchemaValidationError,
    TransitionError,
    ValidationError,
)

from .assistant import HealthAssistant
from .domain import SessionLifecycle
from .profiles import ProfileDirectory, ProfileStoreError
from .relay import ChatRelay
from .schemas import (
    AI_CHAT_SCHEMA,
    APPOINTMENT_SCHEMA,
    APPOINTMENT_UPDATE_SCHEMA,
    CHAT_MESSAGE_SCHEMA,
    CLINIC_SCHEMA,
    CONVERSATION_SCHEMA,
    DOCTOR_SCHEMA,
    NEWS_SCHEMA,
    SESSION_SCHEMA,
    SESSION_STATUS_SCHEMA,
    TEXT_SCHEMA,
    USER_SCHEMA,
    AiChatResponse,
    AiConversation,
    Appointment,
    ChatMessage,
    Clinic,
    Doctor,
    MedicalNews,
    SentimentResult,
    SummaryResponse,
    TelemedicineSession,
    User,
    UserCreate,
)
from .storage import ClinicStorage

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_storage(request: Request) -> ClinicStorage:
    return request.app.state.storage


def get_assistant(request: Request) -> HealthAssistant:
    return request.app.state.assistant


def get_identity(request: Request) -> IdentityProvider:
    return request.app.state.identity


def get_profiles(request: Request) -> Optional[ProfileDirectory]:
    return request.app.state.profiles


def get_session_lifecycle(request: Request) -> SessionLifecycle:
    return request.app.state.session_lifecycle


def error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    content: Dict[str, Any] = {"message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


def not_found(entity: str) -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, f"{entity} not found")


def reject_duplicate_email(storage: ClinicStorage, email: str):
    """Email uniqueness is a boundary rule; the store accepts duplicates."""
    if storage.get_user_by_email(email) is not None:
        raise SchemaValidationError("user", [
            ValidationError(field="email", message="Email is already registered", code="duplicate"),
        ])


# =============================================================================
# USER ROUTES
# =============================================================================

@router.post("/api/users", response_model=User)
async def create_user(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    data = USER_SCHEMA.parse(payload)
    reject_duplicate_email(storage, data.email)
    user = storage.create_user(data)
    logger.info(f"Created user {user.id} ({user.role.value})")
    return user


@router.get("/api/users/email/{email}", response_model=User)
async def get_user_by_email(email: str, storage: ClinicStorage = Depends(get_storage)):
    user = storage.get_user_by_email(email)
    if user is None:
        return not_found("User")
    return user


@router.get("/api/users/{user_id}", response_model=User)
async def get_user(user_id: str, storage: ClinicStorage = Depends(get_storage)):
    user = storage.get_user(user_id)
    if user is None:
        return not_found("User")
    return user


# =============================================================================
# DOCTOR AND CLINIC ROUTES
# =============================================================================

@router.get("/api/doctors", response_model=List[Doctor])
async def list_doctors(storage: ClinicStorage = Depends(get_storage)):
    return storage.get_all_doctors()


@router.post("/api/doctors", response_model=Doctor)
async def create_doctor(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    doctor = storage.create_doctor(DOCTOR_SCHEMA.parse(payload))
    logger.info(f"Created doctor {doctor.id} ({doctor.specialty})")
    return doctor


@router.get("/api/doctors/clinic/{clinic_id}", response_model=List[Doctor])
async def list_clinic_doctors(clinic_id: str, storage: ClinicStorage = Depends(get_storage)):
    return storage.get_doctors_by_clinic(clinic_id)


@router.post("/api/clinics", response_model=Clinic)
async def create_clinic(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    clinic = storage.create_clinic(CLINIC_SCHEMA.parse(payload))
    logger.info(f"Created clinic {clinic.id}")
    return clinic


@router.get("/api/clinics/{clinic_id}", response_model=Clinic)
async def get_clinic(clinic_id: str, storage: ClinicStorage = Depends(get_storage)):
    clinic = storage.get_clinic(clinic_id)
    if clinic is None:
        return not_found("Clinic")
    return clinic


# =============================================================================
# APPOINTMENT ROUTES
# =============================================================================

@router.post("/api/appointments", response_model=Appointment)
async def create_appointment(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    appointment = storage.create_appointment(APPOINTMENT_SCHEMA.parse(payload))
    logger.info(f"Booked appointment {appointment.id} for patient {appointment.patient_id}")
    return appointment


@router.get("/api/appointments/patient/{patient_id}", response_model=List[Appointment])
async def list_patient_appointments(patient_id: str, storage: ClinicStorage = Depends(get_storage)):
    return storage.get_appointments_by_patient(patient_id)


@router.get("/api/appointments/doctor/{doctor_id}", response_model=List[Appointment])
async def list_doctor_appointments(doctor_id: str, storage: ClinicStorage = Depends(get_storage)):
    return storage.get_appointments_by_doctor(doctor_id)


@router.patch("/api/appointments/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: str,
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    changes = APPOINTMENT_UPDATE_SCHEMA.parse(payload)
    updates = changes.model_dump(exclude_none=True)
    try:
        return storage.update_appointment(appointment_id, updates)
    except RecordNotFoundError as e:
        logger.error(f"Failed to update appointment {appointment_id}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update appointment", str(e))


# =============================================================================
# CHAT MESSAGE ROUTES
# =============================================================================

@router.post("/api/chat/messages", response_model=ChatMessage)
async def create_chat_message(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    return storage.create_chat_message(CHAT_MESSAGE_SCHEMA.parse(payload))


@router.get("/api/chat/session/{session_id}", response_model=List[ChatMessage])
async def list_session_messages(session_id: str, storage: ClinicStorage = Depends(get_storage)):
    return storage.get_chat_messages_by_session(session_id)


# =============================================================================
# AI ASSISTANT ROUTES
# =============================================================================

@router.post("/api/ai/chat", response_model=AiChatResponse)
async def ai_chat(
    payload: Any = Body(...),
    assistant: HealthAssistant = Depends(get_assistant),
):
    if not isinstance(payload, dict) or not payload.get("message"):
        return error_response(status.HTTP_400_BAD_REQUEST, "Message is required")

    request = AI_CHAT_SCHEMA.parse(payload)
    reply = await assistant.chat(request.message, request.history)
    return AiChatResponse(message=reply)


@router.post("/api/ai/sentiment", response_model=SentimentResult)
async def ai_sentiment(
    payload: Any = Body(...),
    assistant: HealthAssistant = Depends(get_assistant),
):
    request = TEXT_SCHEMA.parse(payload)
    return await assistant.analyze_sentiment(request.text)


@router.post("/api/ai/summarize", response_model=SummaryResponse)
async def ai_summarize(
    payload: Any = Body(...),
    assistant: HealthAssistant = Depends(get_assistant),
):
    request = TEXT_SCHEMA.parse(payload)
    return SummaryResponse(summary=await assistant.summarize(request.text))


@router.post("/api/ai/conversations", response_model=AiConversation)
async def create_ai_conversation(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    return storage.create_ai_conversation(CONVERSATION_SCHEMA.parse(payload))


@router.get("/api/ai/conversations/user/{user_id}", response_model=List[AiConversation])
async def list_ai_conversations(user_id: str, storage: ClinicStorage = Depends(get_storage)):
    return storage.get_ai_conversations_by_user(user_id)


# =============================================================================
# MEDICAL NEWS ROUTES
# =============================================================================

@router.get("/api/news", response_model=List[MedicalNews])
async def list_news(storage: ClinicStorage = Depends(get_storage)):
    return storage.get_medical_news()


@router.post("/api/news", response_model=MedicalNews)
async def create_news(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    return storage.create_medical_news(NEWS_SCHEMA.parse(payload))


# =============================================================================
# TELEMEDICINE ROUTES
# =============================================================================

@router.post("/api/telemedicine/session", response_model=TelemedicineSession)
async def create_telemedicine_session(
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
):
    session = storage.create_telemedicine_session(SESSION_SCHEMA.parse(payload))
    logger.info(f"Opened telemedicine session {session.id} in room {session.room_id}")
    return session


@router.patch("/api/telemedicine/session/{session_id}", response_model=TelemedicineSession)
async def update_telemedicine_session(
    session_id: str,
    payload: Any = Body(...),
    storage: ClinicStorage = Depends(get_storage),
    lifecycle: SessionLifecycle = Depends(get_session_lifecycle),
):
    change = SESSION_STATUS_SCHEMA.parse(payload)
    session = storage.get_telemedicine_session(session_id)
    if session is None:
        error = RecordNotFoundError("Telemedicine session", session_id)
        logger.error(f"Failed to update session {session_id}: {error}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update session", str(error))

    updates = lifecycle.transition(session, change.status)
    if not updates:
        return session
    session = storage.update_telemedicine_session(session_id, updates)
    logger.info(f"Telemedicine session {session_id} is now {session.status.value}")
    return session


# =============================================================================
# AUTHENTICATION ROUTES
# =============================================================================

def _public_user(user: User) -> Dict[str, Any]:
    return user.model_dump(mode="json", by_alias=True)


@router.post("/api/auth/register", response_model=LoginResponse)
async def register(
    request: RegisterRequest,
    storage: ClinicStorage = Depends(get_storage),
    identity: IdentityProvider = Depends(get_identity),
    profiles: Optional[ProfileDirectory] = Depends(get_profiles),
):
    """
    Create a user, its credentials and (when configured) its profile document.
    """
    reject_duplicate_email(storage, request.email)
    if identity.has_credentials(request.email):
        raise SchemaValidationError("user", [
            ValidationError(field="email", message="Email is already registered", code="duplicate"),
        ])

    data = UserCreate(**request.model_dump(exclude={"password"}))
    user = storage.create_user(data)
    identity.register_credentials(user.id, user.email, request.password)

    if profiles is not None:
        try:
            profiles.save_profile(user.id, _public_user(user))
        except ProfileStoreError as e:
            # /api/auth/me falls back to the record store when no profile exists
            logger.error(f"Profile mirroring failed for {user.id}: {e}")

    token = identity.create_session(_public_user(user))
    return LoginResponse(success=True, message="Registration successful", token=token, user=_public_user(user))


@router.post("/api/auth/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    storage: ClinicStorage = Depends(get_storage),
    identity: IdentityProvider = Depends(get_identity),
):
    """
    Authenticate user with email and password.
    Returns a session token on success.
    """
    user_id = identity.authenticate(request.email, request.password)
    user = storage.get_user(user_id)
    if user is None:
        raise AuthenticationError("Invalid email or password")

    token = identity.create_session(_public_user(user))
    logger.info(f"User logged in: {user.email}")
    return LoginResponse(success=True, message="Login successful", token=token, user=_public_user(user))


@router.post("/api/auth/logout")
async def logout(request: Request, identity: IdentityProvider = Depends(get_identity)):
    """Log out the current user by invalidating their session."""
    if identity.delete_session(extract_token(request)):
        return {"success": True, "message": "Logged out successfully"}
    return {"success": True, "message": "No active session"}


@router.get("/api/auth/me")
async def current_user(
    request: Request,
    storage: ClinicStorage = Depends(get_storage),
    identity: IdentityProvider = Depends(get_identity),
    profiles: Optional[ProfileDirectory] = Depends(get_profiles),
):
    """
    Get the current logged-in user's profile.

    The profile document wins when the document database is configured;
    otherwise the record store's user is returned.
    """
    user_id = identity.verify_token(extract_token(request))

    profile = None
    if profiles is not None:
        try:
            profile = profiles.get_profile(user_id)
        except ProfileStoreError as e:
            logger.error(f"Profile lookup failed for {user_id}: {e}")

    if profile is None:
        user = storage.get_user(user_id)
        if user is None:
            raise AuthenticationError("Invalid or expired session")
        profile = _public_user(user)

    return {"authenticated": True, "user": profile}


# =============================================================================
# REALTIME RELAY
# =============================================================================

@router.websocket("/ws")
async def relay_endpoint(websocket: WebSocket):
    relay: ChatRelay = websocket.app.state.relay
    await relay.serve(websocket)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def schema_validation_handler(request: Request, exc: SchemaValidationError) -> JSONResponse:
    logger.warning(f"Validation error on {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "code": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}: {details}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request data", "error": "; ".join(d["message"] for d in details), "details": details},
    )


async def transition_error_handler(request: Request, exc: TransitionError) -> JSONResponse:
    logger.warning(f"Rejected status change on {request.url.path}: {exc}")
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid status change", str(exc))


async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return error_response(status.HTTP_401_UNAUTHORIZED, str(exc))


async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
    logger.error(f"AI request on {request.url.path} failed: {exc}", exc_info=True)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to get AI response", str(exc))


async def record_not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    logger.error(f"Update on {request.url.path} failed: {exc}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update record", str(exc))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(SchemaValidationError, schema_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(TransitionError, transition_error_handler)
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(AssistantError, assistant_error_handler)
    app.add_exception_handler(RecordNotFoundError, record_not_found_handler)
