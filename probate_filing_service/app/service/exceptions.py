"""
Custom exceptions for the Probate Filing service.
"""
from typing import Any, List, Optional


class BaseProbateFilingError(Exception):
    """Base class for exceptions in this module."""
    pass

# --- Aggregate invariant violations ---

class InvariantViolationError(BaseProbateFilingError):
    """Raised when an operation would break a rule the application must always satisfy."""
    pass

class InvalidContextError(InvariantViolationError):
    """Raised when a succession context is internally inconsistent."""
    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid succession context ({field}): {reason}")

class DuplicateDocumentError(InvariantViolationError):
    """Raised when a current document of the same type is already attached."""
    def __init__(self, application_id: str, document_type: str):
        self.application_id = application_id
        self.document_type = document_type
        super().__init__(
            f"Application '{application_id}' already has a current document of type '{document_type}'."
        )

class DuplicateConsentError(InvariantViolationError):
    """Raised when a stakeholder already has a consent record on the application."""
    def __init__(self, application_id: str, family_member_id: str):
        self.application_id = application_id
        self.family_member_id = family_member_id
        super().__init__(
            f"Application '{application_id}' already holds a consent for family member '{family_member_id}'."
        )

class NothingToApproveError(InvariantViolationError):
    """Raised when no document is awaiting a review decision."""
    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(f"Application '{application_id}' has no documents under review.")

class NotReadyToFileError(InvariantViolationError):
    """Raised when filing is attempted before every readiness condition holds.

    `report` is the ReadinessReport computed at the time of the attempt; callers
    use `failed_conditions` / `blocking_reasons` to render an actionable message.
    """
    def __init__(self, application_id: str, current_state: str, report: Any):
        self.application_id = application_id
        self.current_state = current_state
        self.report = report
        self.failed_conditions = list(report.failed_conditions)
        self.blocking_reasons = list(report.blocking_reasons)
        reasons = "; ".join(self.blocking_reasons) or f"application is in state '{current_state}'"
        super().__init__(f"Application '{application_id}' is not ready to file: {reasons}")

class AggregateInvariantError(InvariantViolationError):
    """Raised by the validation pass when persisted or in-memory state is inconsistent."""
    def __init__(self, application_id: str, violations: List[str]):
        self.application_id = application_id
        self.violations = violations
        super().__init__(f"Application '{application_id}' failed validation: {'; '.join(violations)}")

# --- Transitions ---

class InvalidTransitionError(BaseProbateFilingError):
    """Raised when an operation is attempted on an entity in a state that does not allow it."""
    def __init__(self, entity: str, entity_id: str, current_state: str, attempted_action: str):
        self.entity = entity
        self.entity_id = entity_id
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} for {entity} '{entity_id}' in state '{current_state}'.")

class ConsentRequestExpiredError(InvalidTransitionError):
    """Raised when a consent response arrives after its request expired."""
    def __init__(self, consent_id: str, attempted_action: str):
        super().__init__("consent", consent_id, "PENDING (expired)", attempted_action)

# --- Lookups ---

class ChildNotFoundError(BaseProbateFilingError):
    """Raised when a document or consent id is not owned by the application."""
    def __init__(self, application_id: str, child_kind: str, child_id: str):
        self.application_id = application_id
        self.child_kind = child_kind
        self.child_id = child_id
        super().__init__(f"{child_kind.capitalize()} '{child_id}' not found in application '{application_id}'.")

class ApplicationNotFoundError(BaseProbateFilingError):
    """Raised when the repository holds no application with the given id."""
    def __init__(self, application_id: str):
        self.application_id = application_id
        super().__init__(f"Probate application with ID '{application_id}' not found.")

class ConcurrencyConflictError(BaseProbateFilingError):
    """Raised when a version conflict is detected during an update operation."""
    def __init__(self, aggregate_id: str, expected_version: int, actual_version: Optional[int]):
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrency conflict for aggregate '{aggregate_id}'. "
            f"Expected version {expected_version}, but found {actual_version}."
        )

# --- Infrastructure ---

class ConfigurationError(BaseProbateFilingError):
    """Raised when a configuration issue is detected."""
    pass

class DocumentRenderingError(BaseProbateFilingError):
    """Raised when the rendering service cannot produce a document."""
    pass

class ConsentDeliveryError(BaseProbateFilingError):
    """Raised when a consent request could not be delivered to the family member."""
    pass

class KafkaProducerError(BaseProbateFilingError):
    """Raised when there's an issue with Kafka message production."""
    pass
