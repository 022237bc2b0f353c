"""
Domain value objects for enrollment.

Value objects are immutable and have no identity. They are defined
only by their attributes and are the building blocks of the
EnrollmentRun aggregate.

Uses ValueObject base class from py-cqrs-ddd-toolkit.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any

from cqrs_ddd.ddd import ValueObject

from cqrs_ddd_enrollment.domain.errors import EnrollmentDomainError


# ═══════════════════════════════════════════════════════════════
# VERIFICATION VOCABULARY
# ═══════════════════════════════════════════════════════════════


class VerificationStrategy(str, Enum):
    """Channels a claim can be verified through, in the order users try them."""

    CODE = "code"
    LINK = "link"
    PASSWORD = "password"


class CodeTypeTag(str, Enum):
    """
    Type tags the identity provider may have issued a code under.

    The provider does not say which tag it used, so codes are
    verified against each tag in CODE_TYPE_TAG_ORDER.
    """

    EMAIL = "email"
    SIGNUP = "signup"
    MAGICLINK = "magiclink"


CODE_TYPE_TAG_ORDER: tuple[CodeTypeTag, ...] = (
    CodeTypeTag.EMAIL,
    CodeTypeTag.SIGNUP,
    CodeTypeTag.MAGICLINK,
)


class OutcomeStatus(str, Enum):
    """Terminal (or pending) status of one verification attempt."""

    PENDING = "pending"
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FALLBACK = "fallback"
    FATAL = "fatal"


class ErrorClass(str, Enum):
    """Error taxonomy consumed by the orchestrator's transition table."""

    RETRYABLE_INPUT = "retryable_input"
    FALLBACK_TRIGGERING = "fallback_triggering"
    FATAL_IDENTITY = "fatal_identity"
    VALIDATION = "validation"
    FINALIZATION = "finalization"


class FailureReason(str, Enum):
    """Closed set of classified failure reasons."""

    # Retryable input
    EXPIRED = "expired"
    INVALID = "invalid"
    WRONG_PASSWORD = "wrong_password"
    WEAK_PASSWORD = "weak_password"
    PASSWORD_MISMATCH = "password_mismatch"
    TIMEOUT = "timeout"
    SEND_FAILED = "send_failed"
    BACKEND_ERROR = "backend_error"
    ATTEMPT_IN_PROGRESS = "attempt_in_progress"
    # Fallback triggering
    RATE_LIMITED = "rate_limited"
    CROSS_CONTEXT_LINK = "cross_context_link"
    LINK_CONSUMED = "link_consumed"
    SIGNUPS_DISABLED = "signups_disabled"
    # Fatal identity
    NOT_FOUND = "not_found"
    PASSWORD_NOT_COMMITTED = "password_not_committed"
    PROFILE_UNAVAILABLE = "profile_unavailable"
    # Validation
    INVALID_EMAIL = "invalid_email"
    REQUIRED = "required"
    INVALID_PHONE = "invalid_phone"
    INVALID_DATE = "invalid_date"
    UNDERAGE = "underage"
    IMPLAUSIBLE_AGE = "implausible_age"
    INVALID_CHOICE = "invalid_choice"
    INVALID_HANDLE = "invalid_handle"
    TOO_LONG = "too_long"
    # Finalization
    PUBLISH_FAILED = "publish_failed"
    SAVE_FAILED = "save_failed"
    RESOLVE_FAILED = "resolve_failed"

    @property
    def error_class(self) -> ErrorClass:
        return _ERROR_CLASSES[self]

    @property
    def message(self) -> str:
        """Corrective message shown to the user."""
        return _MESSAGES[self]


_ERROR_CLASSES: dict[FailureReason, ErrorClass] = {
    FailureReason.EXPIRED: ErrorClass.RETRYABLE_INPUT,
    FailureReason.INVALID: ErrorClass.RETRYABLE_INPUT,
    FailureReason.WRONG_PASSWORD: ErrorClass.RETRYABLE_INPUT,
    FailureReason.WEAK_PASSWORD: ErrorClass.RETRYABLE_INPUT,
    FailureReason.PASSWORD_MISMATCH: ErrorClass.RETRYABLE_INPUT,
    FailureReason.TIMEOUT: ErrorClass.RETRYABLE_INPUT,
    FailureReason.SEND_FAILED: ErrorClass.RETRYABLE_INPUT,
    FailureReason.BACKEND_ERROR: ErrorClass.RETRYABLE_INPUT,
    FailureReason.ATTEMPT_IN_PROGRESS: ErrorClass.RETRYABLE_INPUT,
    FailureReason.RATE_LIMITED: ErrorClass.FALLBACK_TRIGGERING,
    FailureReason.CROSS_CONTEXT_LINK: ErrorClass.FALLBACK_TRIGGERING,
    FailureReason.LINK_CONSUMED: ErrorClass.FALLBACK_TRIGGERING,
    FailureReason.SIGNUPS_DISABLED: ErrorClass.FALLBACK_TRIGGERING,
    FailureReason.NOT_FOUND: ErrorClass.FATAL_IDENTITY,
    FailureReason.PASSWORD_NOT_COMMITTED: ErrorClass.FATAL_IDENTITY,
    FailureReason.PROFILE_UNAVAILABLE: ErrorClass.FATAL_IDENTITY,
    FailureReason.INVALID_EMAIL: ErrorClass.VALIDATION,
    FailureReason.REQUIRED: ErrorClass.VALIDATION,
    FailureReason.INVALID_PHONE: ErrorClass.VALIDATION,
    FailureReason.INVALID_DATE: ErrorClass.VALIDATION,
    FailureReason.UNDERAGE: ErrorClass.VALIDATION,
    FailureReason.IMPLAUSIBLE_AGE: ErrorClass.VALIDATION,
    FailureReason.INVALID_CHOICE: ErrorClass.VALIDATION,
    FailureReason.INVALID_HANDLE: ErrorClass.VALIDATION,
    FailureReason.TOO_LONG: ErrorClass.VALIDATION,
    FailureReason.PUBLISH_FAILED: ErrorClass.FINALIZATION,
    FailureReason.SAVE_FAILED: ErrorClass.FINALIZATION,
    FailureReason.RESOLVE_FAILED: ErrorClass.FINALIZATION,
}

_MESSAGES: dict[FailureReason, str] = {
    FailureReason.EXPIRED: "This code has expired. Request a new one.",
    FailureReason.INVALID: "That code is not valid. Check the 8 digits and try again.",
    FailureReason.WRONG_PASSWORD: "Incorrect email or password.",
    FailureReason.WEAK_PASSWORD: "Password must be at least 6 characters.",
    FailureReason.PASSWORD_MISMATCH: "Passwords do not match.",
    FailureReason.TIMEOUT: "The request took too long. Please try again.",
    FailureReason.SEND_FAILED: "We could not send your code. Please try again.",
    FailureReason.BACKEND_ERROR: "Something went wrong. Please try again.",
    FailureReason.ATTEMPT_IN_PROGRESS: "Please wait, we are still checking your last attempt.",
    FailureReason.RATE_LIMITED: "Too many emails were requested. Sign in with a password instead.",
    FailureReason.CROSS_CONTEXT_LINK: "Open the link in the same browser you requested it from, or use a password.",
    FailureReason.LINK_CONSUMED: "This link has already been used or has expired. Use a password instead.",
    FailureReason.SIGNUPS_DISABLED: "Email sign up is currently unavailable. Use a password instead.",
    FailureReason.NOT_FOUND: "We could not find this account. Please start again.",
    FailureReason.PASSWORD_NOT_COMMITTED: "Your account could not be activated. Please start again.",
    FailureReason.PROFILE_UNAVAILABLE: "We could not load your profile. Please start again.",
    FailureReason.INVALID_EMAIL: "Please enter a valid email address.",
    FailureReason.REQUIRED: "This field is required",
    FailureReason.INVALID_PHONE: "Please enter a valid WhatsApp number (e.g., +1234567890)",
    FailureReason.INVALID_DATE: "Please enter a valid date of birth",
    FailureReason.UNDERAGE: "You are below the minimum age for this platform",
    FailureReason.IMPLAUSIBLE_AGE: "Please enter a valid date of birth",
    FailureReason.INVALID_CHOICE: "Please choose one of the available options",
    FailureReason.INVALID_HANDLE: "Please enter a valid Instagram handle",
    FailureReason.TOO_LONG: "This value is too long",
    FailureReason.PUBLISH_FAILED: "Session not accessible. Please try again.",
    FailureReason.SAVE_FAILED: "We could not save your details. Please try again.",
    FailureReason.RESOLVE_FAILED: "We could not finish signing you in. Please try again.",
}


# ═══════════════════════════════════════════════════════════════
# IDENTITY & SESSION
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class IdentityClaim(ValueObject):
    """
    An email address that has not been proven yet.

    Transient: held by the run while verification is in progress,
    never persisted raw.
    """

    email: str

    @classmethod
    def from_input(cls, raw: str) -> "IdentityClaim":
        email = (raw or "").strip().lower()
        local, _, domain = email.partition("@")
        if not local or "." not in domain or " " in email:
            raise EnrollmentDomainError(
                "Please enter a valid email address.", code="INVALID_EMAIL"
            )
        return cls(email=email)


@dataclass(frozen=True)
class VerifiedSession(ValueObject):
    """
    Durable artifact of a successful verification attempt.

    expires_at is an epoch timestamp in seconds; None means the
    provider gave no explicit expiry.
    """

    access_token: str
    refresh_token: str
    user_id: str
    email: str = ""
    expires_at: Optional[int] = None
    user: dict = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Payload stored in the published session record."""
        user = dict(self.user)
        user.setdefault("id", self.user_id)
        if self.email:
            user.setdefault("email", self.email)
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "user": user,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "VerifiedSession":
        user = data.get("user") or {}
        if not isinstance(user, dict):
            raise TypeError(f"session user must be an object, got {type(user).__name__}")
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            user_id=user.get("id", ""),
            email=user.get("email", ""),
            expires_at=int(expires_at) if expires_at is not None else None,
            user=user,
        )


@dataclass(frozen=True)
class VerificationOutcome(ValueObject):
    """
    Result of one verification attempt.

    A tagged value, never an exception: status says what happened,
    reason classifies failures, tag records which code type tag
    produced the result when the code strategy was used.
    """

    strategy: VerificationStrategy
    status: OutcomeStatus
    reason: Optional[FailureReason] = None
    session: Optional[VerifiedSession] = None
    tag: Optional[CodeTypeTag] = None

    @classmethod
    def success(
        cls,
        strategy: VerificationStrategy,
        session: VerifiedSession,
        tag: Optional[CodeTypeTag] = None,
    ) -> "VerificationOutcome":
        return cls(
            strategy=strategy,
            status=OutcomeStatus.SUCCESS,
            session=session,
            tag=tag,
        )

    @classmethod
    def failure(
        cls,
        strategy: VerificationStrategy,
        reason: FailureReason,
        tag: Optional[CodeTypeTag] = None,
    ) -> "VerificationOutcome":
        """Build a failed outcome whose status follows the reason's class."""
        status = {
            ErrorClass.FALLBACK_TRIGGERING: OutcomeStatus.FALLBACK,
            ErrorClass.FATAL_IDENTITY: OutcomeStatus.FATAL,
        }.get(reason.error_class, OutcomeStatus.RETRYABLE)
        return cls(strategy=strategy, status=status, reason=reason, tag=tag)

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def requires_fallback(self) -> bool:
        return self.status == OutcomeStatus.FALLBACK

    @property
    def is_fatal(self) -> bool:
        return self.status == OutcomeStatus.FATAL


# ═══════════════════════════════════════════════════════════════
# PROFILE
# ═══════════════════════════════════════════════════════════════


class FieldId(str, Enum):
    """Profile fields collected by the wizard. Values are store column names."""

    FIRST_NAME = "name"
    LAST_NAME = "surname"
    DATE_OF_BIRTH = "date_of_birth"
    GENDER = "gender"
    MESSAGING_NUMBER = "whatsapp"
    SOCIAL_HANDLE = "instagram_handle"

    @property
    def label(self) -> str:
        return _FIELD_LABELS[self]


_FIELD_LABELS: dict[FieldId, str] = {
    FieldId.FIRST_NAME: "What's your first name?",
    FieldId.LAST_NAME: "And your last name?",
    FieldId.DATE_OF_BIRTH: "When were you born?",
    FieldId.GENDER: "What's your gender?",
    FieldId.MESSAGING_NUMBER: "What's your WhatsApp number?",
    FieldId.SOCIAL_HANDLE: "What's your Instagram handle?",
}


@dataclass(frozen=True)
class ProfileRecord(ValueObject):
    """Persisted user attributes read from the relational store."""

    name: Optional[str] = None
    surname: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    whatsapp: Optional[str] = None
    instagram_handle: Optional[str] = None

    def value_of(self, field_id: FieldId) -> Optional[str]:
        return getattr(self, field_id.value)

    def is_empty(self, field_id: FieldId) -> bool:
        value = self.value_of(field_id)
        return value is None or not str(value).strip()

    def merged(self, values: dict[FieldId, Optional[str]]) -> "ProfileRecord":
        """Return a copy with the given field values applied."""
        data = self.to_dict()
        for field_id, value in values.items():
            data[field_id.value] = value
        return ProfileRecord.from_dict(data)

    def to_dict(self) -> dict[str, Optional[str]]:
        return {f.value: self.value_of(f) for f in FieldId}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProfileRecord":
        values = {}
        for f in FieldId:
            raw = data.get(f.value)
            values[f.value] = str(raw) if raw is not None else None
        return cls(**values)


# ═══════════════════════════════════════════════════════════════
# ROLES & DESTINATIONS
# ═══════════════════════════════════════════════════════════════


class RoleSource(str, Enum):
    """Independent role/affiliation sources, consulted by RoleResolver."""

    PLATFORM_ADMIN = "platform_admin"
    DOOR_STAFF = "door_staff"
    VENUE_STAFF = "venue_staff"
    ORGANIZER_STAFF = "organizer_staff"
    PROMOTER = "promoter"
    PERFORMER = "performer"


OVERRIDE_SOURCE = "override"


@dataclass(frozen=True)
class Destination(ValueObject):
    """
    The single landing path resolved for a verified identity.

    source is the RoleSource value that matched, "override" for an
    honored caller-supplied path, or None for the attendee default.
    """

    path: str
    source: Optional[str] = None

    @property
    def is_staff_bound(self) -> bool:
        return self.source is not None
