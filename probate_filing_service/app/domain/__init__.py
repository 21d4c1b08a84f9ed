# Pure domain model: no I/O, no logging. Time comes from an injected Clock.
from .application import ApplicationStatus, ApplicationType, ProbateApplication
from .consent import ConsentMethod, ConsentStatus, FamilyConsent, FamilyRole, RequestChannel
from .context import CourtJurisdiction, SuccessionContext
from .document import DocumentStatus, ProbateDocument, RenderedDocument
from .form_types import FormType
from .readiness import ReadinessCondition, ReadinessReport, assess_readiness
