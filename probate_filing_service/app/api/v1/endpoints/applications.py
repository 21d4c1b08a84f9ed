# API Router for Probate Applications
from fastapi import APIRouter, Depends, HTTPException, Body
import logging
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from probate_filing_service.app.domain.context import CourtJurisdiction, SuccessionContext
from probate_filing_service.app.service.commands import handlers
from probate_filing_service.app.service.commands import models as commands
from probate_filing_service.app.service.interfaces.application_repository import AbstractProbateApplicationRepository
from probate_filing_service.app.service.strategies.document_strategies import FormRequirementPlan, get_forms_strategy
from probate_filing_service.infrastructure.database import schemas as db_schemas
from probate_filing_service.infrastructure.database import read_models as read_model_ops
from probate_filing_service.infrastructure.database.application_repository import get_application_repository
from probate_filing_service.infrastructure.database.connection import get_db
from probate_filing_service.infrastructure.kafka.producer import ProbateEventProducer, get_kafka_producer
from .common import application_view, readiness_view, run_command, to_http_exception

logger = logging.getLogger(__name__)
router = APIRouter()

# --- Queries ---

@router.get("/applications", response_model=List[db_schemas.ApplicationSummaryDB], tags=["Applications"])
async def list_applications(
    status: Optional[str] = None,
    limit: int = 10,
    skip: int = 0,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await read_model_ops.list_application_summaries(db=db, status=status, limit=limit, skip=skip)
    except Exception as e:
        logger.error(f"Error listing applications: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list applications")


@router.get("/applications/{application_id}/summary", response_model=db_schemas.ApplicationSummaryDB, tags=["Applications"])
async def get_application_summary(application_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        summary = await read_model_ops.get_application_summary(db=db, application_id=application_id)
    except Exception as e:
        logger.error(f"Error retrieving application summary {application_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to retrieve application {application_id}")
    if summary is None:
        raise HTTPException(status_code=404, detail=f"Application '{application_id}' not found")
    return summary


@router.get("/applications/{application_id}", tags=["Applications"])
async def get_application(
    application_id: str,
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository)
):
    """Returns the authoritative application snapshot with its documents and consents."""
    try:
        application = await handlers.load_application(repository, application_id)
    except Exception as e:
        raise to_http_exception(e, f"loading application {application_id}") from e
    return {
        **application.model_dump(mode="json"),
        "progress_percentage": application.progress_percentage(),
        "estimated_filing_fee": application.estimated_filing_fee(),
        "readiness": readiness_view(application.readiness()),
    }


@router.get("/applications/{application_id}/readiness", tags=["Applications"])
async def get_application_readiness(
    application_id: str,
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository)
):
    try:
        application = await handlers.load_application(repository, application_id)
    except Exception as e:
        raise to_http_exception(e, f"loading application {application_id}") from e
    return {
        "application_id": application.id,
        "status": application.status.value,
        "can_file": application.can_file(),
        **readiness_view(application.readiness()),
    }


@router.post("/required-forms", response_model=FormRequirementPlan, tags=["Applications"])
async def determine_required_forms(
    context: SuccessionContext = Body(..., embed=True),
    target_court: Optional[CourtJurisdiction] = Body(None, embed=True),
):
    """Lists the court forms an application with this succession context needs, primary petition first."""
    strategy = get_forms_strategy(context)
    return strategy.determine_required_forms(context, target_court)

# --- Commands ---

@router.post("/applications", status_code=201, summary="Open a new probate application", tags=["Applications"])
async def create_application(
    request_data: commands.CreateApplicationCommand = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    try:
        application = await handlers.handle_create_application(db, request_data, repository, kafka_producer)
    except Exception as e:
        raise to_http_exception(e, f"creating application for estate {request_data.estate_id}") from e
    return application_view(application)


@router.post("/applications/{application_id}/readiness-check", tags=["Applications"])
async def check_readiness(
    application_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    ready = await run_command(handlers.handle_check_readiness, commands.CheckReadinessCommand, application_id, {}, "readiness check",
                             db, repository, kafka_producer)
    return {"application_id": application_id, "ready_to_file": ready}


@router.post("/applications/{application_id}/filing-fee", tags=["Applications"])
async def mark_filing_fee_paid(
    application_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(handlers.handle_mark_filing_fee_paid, commands.MarkFilingFeePaidCommand, application_id, request_data, "recording filing fee",
                             db, repository, kafka_producer)
    return application_view(application)


@router.post("/applications/{application_id}/filing", tags=["Applications"])
async def file_application(
    application_id: str,
    request_data: Optional[Dict[str, Any]] = Body(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(handlers.handle_file_application, commands.FileApplicationCommand, application_id, request_data, "filing",
                             db, repository, kafka_producer)
    return {**application_view(application), "court_case_number": application.court_case_number,
            "filed_at": application.filed_at}


@router.post("/applications/{application_id}/court-review", tags=["Court"])
async def record_court_review_started(
    application_id: str,
    request_data: Optional[Dict[str, Any]] = Body(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(handlers.handle_record_court_review_started, commands.RecordCourtReviewStartedCommand, application_id, request_data, "starting court review",
                             db, repository, kafka_producer)
    return application_view(application)


@router.post("/applications/{application_id}/court-rejection", tags=["Court"])
async def record_court_rejection(
    application_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(handlers.handle_record_court_rejection, commands.RecordCourtRejectionCommand, application_id, request_data, "recording court rejection",
                             db, repository, kafka_producer)
    return application_view(application)


@router.post("/applications/{application_id}/grant", tags=["Court"])
async def record_grant(
    application_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(handlers.handle_record_grant, commands.RecordGrantCommand, application_id, request_data, "recording grant",
                             db, repository, kafka_producer)
    return {**application_view(application), "grant_number": application.grant_number}


@router.post("/applications/{application_id}/withdrawal", tags=["Applications"])
async def withdraw_application(
    application_id: str,
    request_data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
    repository: AbstractProbateApplicationRepository = Depends(get_application_repository),
    kafka_producer: ProbateEventProducer = Depends(get_kafka_producer)
):
    application = await run_command(handlers.handle_withdraw_application, commands.WithdrawApplicationCommand, application_id, request_data, "withdrawing",
                             db, repository, kafka_producer)
    return application_view(application)
