# Succession context: immutable legal classification of a probate application
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from probate_filing_service.app.service.exceptions import InvalidContextError

# Section 48 of the Law of Succession Act caps the magistrates' pecuniary jurisdiction.
MAGISTRATE_ESTATE_LIMIT = 7_000_000
COMMERCIAL_ESTATE_THRESHOLD = 100_000_000
SMALL_ESTATE_GAZETTE_EXEMPTION = 100_000


class SuccessionRegime(str, Enum):
    TESTATE = "TESTATE"
    INTESTATE = "INTESTATE"
    PARTIALLY_INTESTATE = "PARTIALLY_INTESTATE"
    CUSTOMARY = "CUSTOMARY"


class MarriageType(str, Enum):
    MONOGAMOUS = "MONOGAMOUS"
    POLYGAMOUS = "POLYGAMOUS"
    COHABITATION = "COHABITATION"
    SINGLE = "SINGLE"
    SEPARATED = "SEPARATED"


class SuccessionReligion(str, Enum):
    STATUTORY = "STATUTORY"
    ISLAMIC = "ISLAMIC"
    HINDU = "HINDU"
    AFRICAN_CUSTOMARY = "AFRICAN_CUSTOMARY"
    CHRISTIAN = "CHRISTIAN"


class CourtJurisdiction(str, Enum):
    HIGH_COURT = "HIGH_COURT"
    MAGISTRATE_COURT = "MAGISTRATE_COURT"
    KADHIS_COURT = "KADHIS_COURT"
    CUSTOMARY_COURT = "CUSTOMARY_COURT"
    FAMILY_DIVISION = "FAMILY_DIVISION"
    COMMERCIAL_COURT = "COMMERCIAL_COURT"


class CasePriority(str, Enum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"


class SuccessionContext(BaseModel):
    """Classification of the estate that decides which forms and consents are needed.

    Set when the application is created and never changed afterwards.
    """
    model_config = ConfigDict(frozen=True)

    regime: SuccessionRegime
    marriage_type: MarriageType
    religion: SuccessionReligion
    is_minor_involved: bool = False
    has_disputed_assets: bool = False
    estimated_complexity_score: int = 1
    total_beneficiaries: int = 1
    estate_value: Optional[float] = None
    is_estate_insolvent: bool = False
    is_business_assets_involved: bool = False
    is_foreign_assets_involved: bool = False
    has_dependants_with_disabilities: bool = False

    @model_validator(mode="after")
    def _check_consistency(self) -> "SuccessionContext":
        if not 1 <= self.estimated_complexity_score <= 10:
            raise InvalidContextError("estimated_complexity_score", "must be between 1 and 10")
        if self.total_beneficiaries < 1:
            raise InvalidContextError("total_beneficiaries", "there must be at least one beneficiary")
        if self.estate_value is not None and self.estate_value < 0:
            raise InvalidContextError("estate_value", "cannot be negative")
        if self.regime == SuccessionRegime.CUSTOMARY and self.religion != SuccessionReligion.AFRICAN_CUSTOMARY:
            raise InvalidContextError("regime", "customary regime requires African customary religion")
        if self.religion == SuccessionReligion.HINDU and self.marriage_type == MarriageType.POLYGAMOUS:
            raise InvalidContextError("marriage_type", "Hindu succession does not recognise polygamous marriages")
        return self

    @property
    def estate_value_or_zero(self) -> float:
        return self.estate_value or 0

    def determine_court_jurisdiction(self) -> CourtJurisdiction:
        value = self.estate_value_or_zero

        if self.religion == SuccessionReligion.ISLAMIC:
            return CourtJurisdiction.KADHIS_COURT
        if self.religion == SuccessionReligion.HINDU:
            return CourtJurisdiction.HIGH_COURT
        if self.religion == SuccessionReligion.AFRICAN_CUSTOMARY:
            return CourtJurisdiction.CUSTOMARY_COURT
        if self.is_business_assets_involved and value > COMMERCIAL_ESTATE_THRESHOLD:
            return CourtJurisdiction.COMMERCIAL_COURT
        if self.is_minor_involved or self.has_disputed_assets:
            return CourtJurisdiction.FAMILY_DIVISION
        if value <= MAGISTRATE_ESTATE_LIMIT and self.estimated_complexity_score <= 3:
            return CourtJurisdiction.MAGISTRATE_COURT
        return CourtJurisdiction.HIGH_COURT

    def determine_case_priority(self) -> CasePriority:
        if self.is_minor_involved and self.is_estate_insolvent:
            return CasePriority.URGENT
        if self.has_disputed_assets and self.estimated_complexity_score >= 8:
            return CasePriority.URGENT
        if self.is_minor_involved or self.has_dependants_with_disabilities:
            return CasePriority.HIGH
        if self.estimated_complexity_score >= 6:
            return CasePriority.HIGH
        if self.regime == SuccessionRegime.INTESTATE and self.total_beneficiaries > 5:
            return CasePriority.NORMAL
        return CasePriority.LOW

    def requires_universal_consent(self) -> bool:
        # Intestacy needs every adult beneficiary; minors need their guardian.
        return (
            self.regime in (SuccessionRegime.INTESTATE, SuccessionRegime.PARTIALLY_INTESTATE)
            or self.is_minor_involved
        )

    def requires_guarantee(self) -> bool:
        return self.is_minor_involved

    def requires_gazette_notice(self) -> bool:
        if self.estate_value_or_zero < SMALL_ESTATE_GAZETTE_EXEMPTION and not self.has_disputed_assets:
            return False
        if (
            self.religion == SuccessionReligion.ISLAMIC
            and not self.has_disputed_assets
            and self.total_beneficiaries <= 3
        ):
            return False
        return True

    def requires_kadhis_court(self) -> bool:
        return self.religion == SuccessionReligion.ISLAMIC

    def is_section_40_applicable(self) -> bool:
        return self.marriage_type == MarriageType.POLYGAMOUS

    def is_simple_case(self) -> bool:
        return (
            self.estimated_complexity_score <= 3
            and not self.has_disputed_assets
            and not self.is_minor_involved
            and not self.is_foreign_assets_involved
            and not self.is_estate_insolvent
        )
