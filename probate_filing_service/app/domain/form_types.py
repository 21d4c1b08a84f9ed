# Catalogue of the court forms a probate application can carry
import datetime
from enum import Enum
from typing import Dict, Iterable, NamedTuple

from .context import CourtJurisdiction


class FormType(str, Enum):
    PA1_PETITION = "PA1_PETITION"
    PA5_PETITION_SUMMARY = "PA5_PETITION_SUMMARY"
    PA80_PETITION_INTESTATE = "PA80_PETITION_INTESTATE"
    ISLAMIC_PETITION = "ISLAMIC_PETITION"
    PA12_AFFIDAVIT_MEANS = "PA12_AFFIDAVIT_MEANS"
    AFFIDAVIT_DUE_EXECUTION = "AFFIDAVIT_DUE_EXECUTION"
    AFFIDAVIT_SUPPORTING_POLYGAMY = "AFFIDAVIT_SUPPORTING_POLYGAMY"
    PA38_CONSENT = "PA38_CONSENT"
    PA57_GUARANTEE = "PA57_GUARANTEE"
    CHIEFS_LETTER_TEMPLATE = "CHIEFS_LETTER_TEMPLATE"
    INVENTORY_ASSETS = "INVENTORY_ASSETS"
    NOTICE_TO_CREDITORS = "NOTICE_TO_CREDITORS"


class FormCategory(str, Enum):
    PRIMARY_PETITION = "PRIMARY_PETITION"
    SUPPORTING_AFFIDAVIT = "SUPPORTING_AFFIDAVIT"
    CONSENT = "CONSENT"
    GUARANTEE = "GUARANTEE"
    NOTICE = "NOTICE"
    SCHEDULE = "SCHEDULE"
    CUSTOMARY = "CUSTOMARY"
    ISLAMIC = "ISLAMIC"


class FileFormat(str, Enum):
    PDF = "PDF"
    DOCX = "DOCX"
    JSON = "JSON"


class FormDefinition(NamedTuple):
    code: str
    display_name: str
    category: FormCategory
    estimated_pages: int
    filing_fee: int
    requires_court_stamp: bool = False
    is_primary_petition: bool = False


class CourtFees(NamedTuple):
    base: int
    per_page: int
    stamp: int


FORM_DEFINITIONS: Dict[FormType, FormDefinition] = {
    FormType.PA1_PETITION: FormDefinition(
        "P&A 1", "Petition for Grant of Probate", FormCategory.PRIMARY_PETITION, 4, 1000,
        requires_court_stamp=True, is_primary_petition=True),
    FormType.PA5_PETITION_SUMMARY: FormDefinition(
        "P&A 5", "Petition for Summary Administration", FormCategory.PRIMARY_PETITION, 2, 500,
        requires_court_stamp=True, is_primary_petition=True),
    FormType.PA80_PETITION_INTESTATE: FormDefinition(
        "P&A 80", "Petition for Letters of Administration", FormCategory.PRIMARY_PETITION, 3, 1000,
        requires_court_stamp=True, is_primary_petition=True),
    # Kadhi's court petitions are primary petitions even though they are catalogued as Islamic forms.
    FormType.ISLAMIC_PETITION: FormDefinition(
        "Islamic Petition", "Islamic Succession Petition", FormCategory.ISLAMIC, 3, 750,
        is_primary_petition=True),
    FormType.PA12_AFFIDAVIT_MEANS: FormDefinition(
        "P&A 12", "Affidavit of Means", FormCategory.SUPPORTING_AFFIDAVIT, 2, 0),
    FormType.AFFIDAVIT_DUE_EXECUTION: FormDefinition(
        "Affidavit of Due Execution", "Affidavit of Due Execution of Will",
        FormCategory.SUPPORTING_AFFIDAVIT, 1, 0),
    FormType.AFFIDAVIT_SUPPORTING_POLYGAMY: FormDefinition(
        "Affidavit (Polygamy)", "Affidavit Supporting Polygamous Household",
        FormCategory.SUPPORTING_AFFIDAVIT, 2, 0),
    FormType.PA38_CONSENT: FormDefinition(
        "P&A 38", "Consent Form", FormCategory.CONSENT, 1, 0),
    FormType.PA57_GUARANTEE: FormDefinition(
        "P&A 57", "Guarantee Form", FormCategory.GUARANTEE, 2, 0, requires_court_stamp=True),
    FormType.CHIEFS_LETTER_TEMPLATE: FormDefinition(
        "Chief's Letter", "Letter from Area Chief", FormCategory.CUSTOMARY, 1, 0),
    FormType.INVENTORY_ASSETS: FormDefinition(
        "Inventory", "Inventory of Assets and Liabilities", FormCategory.SCHEDULE, 2, 0),
    FormType.NOTICE_TO_CREDITORS: FormDefinition(
        "Notice to Creditors", "Notice to Creditors", FormCategory.NOTICE, 1, 0),
}

COURT_FEE_SCHEDULE: Dict[CourtJurisdiction, CourtFees] = {
    CourtJurisdiction.HIGH_COURT: CourtFees(base=1000, per_page=50, stamp=200),
    CourtJurisdiction.MAGISTRATE_COURT: CourtFees(base=500, per_page=20, stamp=100),
    CourtJurisdiction.KADHIS_COURT: CourtFees(base=750, per_page=30, stamp=150),
    CourtJurisdiction.CUSTOMARY_COURT: CourtFees(base=300, per_page=10, stamp=50),
    CourtJurisdiction.FAMILY_DIVISION: CourtFees(base=1200, per_page=60, stamp=250),
    CourtJurisdiction.COMMERCIAL_COURT: CourtFees(base=2000, per_page=100, stamp=500),
}


def get_form_definition(form_type: FormType) -> FormDefinition:
    return FORM_DEFINITIONS[FormType(form_type)]


def is_primary_petition(form_type: FormType) -> bool:
    return get_form_definition(form_type).is_primary_petition


def estimate_form_cost(form_type: FormType, court: CourtJurisdiction) -> int:
    definition = get_form_definition(form_type)
    fees = COURT_FEE_SCHEDULE.get(court, COURT_FEE_SCHEDULE[CourtJurisdiction.HIGH_COURT])
    total = definition.filing_fee + fees.per_page * definition.estimated_pages
    if definition.requires_court_stamp:
        total += fees.stamp
    return total


def estimate_filing_fee(form_types: Iterable[FormType], court: CourtJurisdiction) -> int:
    """Total court fees for a bundle; the court's base fee is charged once per filing."""
    form_types = list(form_types)
    if not form_types:
        return 0
    fees = COURT_FEE_SCHEDULE.get(court, COURT_FEE_SCHEDULE[CourtJurisdiction.HIGH_COURT])
    return fees.base + sum(estimate_form_cost(form_type, court) for form_type in form_types)


def suggested_filename(form_type: FormType, version: int, generated_at: datetime.datetime,
                       file_format: FileFormat = FileFormat.PDF) -> str:
    code = get_form_definition(form_type).code
    safe_code = "".join(ch if ch.isalnum() else "_" for ch in code).strip("_")
    return f"{safe_code}_v{version}_{generated_at:%Y%m%d}.{FileFormat(file_format).value.lower()}"
