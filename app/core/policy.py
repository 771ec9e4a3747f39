"""Role and ownership rules for every protected operation."""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from app.core.exceptions import ForbiddenException
from app.schemas.users import UserRole


class Action(str, Enum):
    """Operations gated by role."""

    BOOK_APPOINTMENT = "book_appointment"
    VIEW_APPOINTMENT = "view_appointment"
    MANAGE_APPOINTMENT = "manage_appointment"
    EDIT_APPOINTMENT_NOTES = "edit_appointment_notes"
    CANCEL_APPOINTMENT = "cancel_appointment"
    VIEW_MEETING = "view_meeting"
    CREATE_MEETING = "create_meeting"
    INITIALIZE_PAYMENT = "initialize_payment"
    VIEW_PAYMENTS = "view_payments"
    WRITE_PRESCRIPTION = "write_prescription"
    VIEW_PRESCRIPTIONS = "view_prescriptions"
    MANAGE_MEDICAL_RECORDS = "manage_medical_records"
    MANAGE_DOCTOR_DOCUMENTS = "manage_doctor_documents"
    VIEW_PATIENTS = "view_patients"
    MESSAGE = "message"
    ADMINISTER = "administer"


P, D, A = UserRole.PATIENT, UserRole.DOCTOR, UserRole.ADMIN

_RULES: dict[Action, frozenset[UserRole]] = {
    Action.BOOK_APPOINTMENT: frozenset({P}),
    Action.VIEW_APPOINTMENT: frozenset({P, D, A}),
    Action.MANAGE_APPOINTMENT: frozenset({D}),
    Action.EDIT_APPOINTMENT_NOTES: frozenset({P}),
    Action.CANCEL_APPOINTMENT: frozenset({P}),
    Action.VIEW_MEETING: frozenset({P, D}),
    Action.CREATE_MEETING: frozenset({P, D}),
    Action.INITIALIZE_PAYMENT: frozenset({P}),
    Action.VIEW_PAYMENTS: frozenset({P, A}),
    Action.WRITE_PRESCRIPTION: frozenset({D}),
    Action.VIEW_PRESCRIPTIONS: frozenset({P, D}),
    Action.MANAGE_MEDICAL_RECORDS: frozenset({P}),
    Action.MANAGE_DOCTOR_DOCUMENTS: frozenset({D}),
    Action.VIEW_PATIENTS: frozenset({D}),
    Action.MESSAGE: frozenset({P, D}),
    Action.ADMINISTER: frozenset({A}),
}


@dataclass(frozen=True)
class Principal:
    """
    The authenticated caller.

    ``profile_id`` is the patient or doctor row id for those roles and the
    admin row id for admins (None when the profile is missing).
    """

    user_id: UUID
    role: UserRole
    email: str
    full_name: str
    profile_id: UUID | None = None

    @property
    def is_patient(self) -> bool:
        return self.role == UserRole.PATIENT

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class AccessPolicy:
    """Answers whether a principal may perform an action on a resource."""

    def __init__(self, rules: dict[Action, frozenset[UserRole]] | None = None):
        """Initialize policy with a (role, action) table."""
        self.rules = rules if rules is not None else _RULES

    def allows(self, principal: Principal, action: Action) -> bool:
        """Check the role table only."""
        return principal.role in self.rules.get(action, frozenset())

    def authorize(
        self,
        principal: Principal,
        action: Action,
        *,
        patient_id: UUID | None = None,
        doctor_id: UUID | None = None,
    ) -> None:
        """
        Enforce role and, when a resource is given, ownership.

        A patient owns resources carrying their patient id and a doctor owns
        resources carrying their doctor id. Admins pass the ownership check.

        Raises:
            ForbiddenException: If either check fails
        """
        if not self.allows(principal, action):
            raise ForbiddenException(f"Role {principal.role.value} may not {action.value}")

        if principal.is_admin:
            return

        if principal.is_patient and patient_id is not None:
            if principal.profile_id != patient_id:
                raise ForbiddenException("Access denied to this resource")
        elif principal.is_doctor and doctor_id is not None:
            if principal.profile_id != doctor_id:
                raise ForbiddenException("Access denied to this resource")


policy = AccessPolicy()
