import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field

from probate_filing_service.app.domain.context import (
    CourtJurisdiction,
    MarriageType,
    SuccessionContext,
    SuccessionRegime,
    SuccessionReligion,
)
from probate_filing_service.app.domain.form_types import FormType, estimate_filing_fee, is_primary_petition

logger = logging.getLogger(__name__)

SUMMARY_ADMINISTRATION_LIMIT = 500_000
GUARANTEE_ESTATE_THRESHOLD = 1_000_000

# Generation order after the primary petition; anything not listed goes last.
_GENERATION_ORDER = (
    FormType.CHIEFS_LETTER_TEMPLATE,
    FormType.AFFIDAVIT_DUE_EXECUTION,
    FormType.PA38_CONSENT,
    FormType.INVENTORY_ASSETS,
)


class FormRequirementPlan(BaseModel):
    forms: List[FormType]
    estimated_filing_fee: int = 0
    instructions: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def primary_petition(self) -> FormType:
        return next(f for f in self.forms if is_primary_petition(f))


class RequiredFormsStrategy(ABC):
    @abstractmethod
    def select_primary_petition(self, context: SuccessionContext, warnings: List[str]) -> FormType:
        pass

    def determine_required_forms(
        self, context: SuccessionContext, target_court: Optional[CourtJurisdiction] = None
    ) -> FormRequirementPlan:
        """
        Determines the court forms an application needs, primary petition first.

        Args:
            context: The succession context of the application.
            target_court: Court used for the fee estimate; defaults to the context's jurisdiction.

        Returns:
            A FormRequirementPlan with the forms in generation order.
        """
        warnings: List[str] = []
        instructions: List[str] = []
        forms = [self.select_primary_petition(context, warnings)]

        if context.regime == SuccessionRegime.INTESTATE:
            forms.append(FormType.CHIEFS_LETTER_TEMPLATE)
            instructions.append("Obtain Letter from Area Chief before filing")
        if context.regime == SuccessionRegime.TESTATE:
            forms.append(FormType.AFFIDAVIT_DUE_EXECUTION)
            instructions.append("Witnesses must sign affidavit confirming Will execution")

        forms.extend([FormType.PA38_CONSENT, FormType.INVENTORY_ASSETS, FormType.NOTICE_TO_CREDITORS])

        if context.is_minor_involved:
            warnings.append("Minor children require guardian appointment (separate process)")
        if context.regime == SuccessionRegime.INTESTATE and context.estate_value_or_zero > GUARANTEE_ESTATE_THRESHOLD:
            forms.append(FormType.PA57_GUARANTEE)
            instructions.append("Administrator must provide surety bond (P&A 57)")
        if context.marriage_type == MarriageType.POLYGAMOUS:
            forms.append(FormType.AFFIDAVIT_SUPPORTING_POLYGAMY)
            instructions.append("List every house and its members under section 40")

        forms.append(FormType.PA12_AFFIDAVIT_MEANS)

        ordered = self._order_for_generation(forms)
        court = target_court or context.determine_court_jurisdiction()
        logger.debug(f"{self.__class__.__name__} selected {len(ordered)} forms for court {court.value}")
        return FormRequirementPlan(
            forms=ordered,
            estimated_filing_fee=estimate_filing_fee(ordered, court),
            instructions=instructions,
            warnings=warnings,
        )

    @staticmethod
    def _order_for_generation(forms: List[FormType]) -> List[FormType]:
        def rank(form_type: FormType) -> int:
            if is_primary_petition(form_type):
                return 0
            if form_type in _GENERATION_ORDER:
                return 1 + _GENERATION_ORDER.index(form_type)
            return 1 + len(_GENERATION_ORDER)
        return sorted(forms, key=rank)


class StatutoryFormsStrategy(RequiredFormsStrategy):
    def select_primary_petition(self, context: SuccessionContext, warnings: List[str]) -> FormType:
        if context.estate_value is not None and context.estate_value < SUMMARY_ADMINISTRATION_LIMIT:
            return FormType.PA5_PETITION_SUMMARY
        if context.regime == SuccessionRegime.TESTATE:
            return FormType.PA1_PETITION
        if context.regime != SuccessionRegime.INTESTATE:
            warnings.append("Regime unclear - defaulting to Letters of Administration")
        return FormType.PA80_PETITION_INTESTATE


class IslamicFormsStrategy(RequiredFormsStrategy):
    def select_primary_petition(self, context: SuccessionContext, warnings: List[str]) -> FormType:
        warnings.append("Islamic case - file in Kadhi's Court with Islamic petition")
        return FormType.ISLAMIC_PETITION


def get_forms_strategy(context: SuccessionContext) -> RequiredFormsStrategy:
    if context.religion == SuccessionReligion.ISLAMIC:
        return IslamicFormsStrategy()
    return StatutoryFormsStrategy()
