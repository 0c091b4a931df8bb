from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from tournex.api.dependencies import get_db
from tournex.core import realtime
from tournex.models import user as user_model
from tournex.schemas import match_schemas
from tournex.schemas.common import Envelope
from tournex.services import auth_service, result_service

router = APIRouter()


def _match_detail(match, report) -> match_schemas.MatchDetail:
    return match_schemas.MatchDetail(
        match=match_schemas.MatchRead.model_validate(match),
        report=match_schemas.MatchReportRead.model_validate(report) if report else None,
    )


def _broadcast_result(background_tasks: BackgroundTasks, detail: match_schemas.MatchDetail):
    background_tasks.add_task(
        realtime.emit_tournament_event,
        detail.match.tournament_id,
        realtime.MATCH_REPORTED,
        detail.model_dump(mode="json"),
    )


@router.get("/{match_id}", response_model=match_schemas.MatchDetail)
async def get_match_endpoint(
    match_id: int,
    db: Session = Depends(get_db),
):
    match, report = result_service.get_match_detail(db=db, match_id=match_id)
    return _match_detail(match, report)


@router.post("/{match_id}/report", response_model=Envelope[match_schemas.MatchDetail])
async def report_result_endpoint(
    match_id: int,
    result_in: match_schemas.MatchResultRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    match, report = result_service.report_result(db=db, match_id=match_id, result_in=result_in, current_user=current_user)
    detail = _match_detail(match, report)
    _broadcast_result(background_tasks, detail)
    return Envelope(message="Match result reported successfully", data=detail)


@router.put("/{match_id}/edit-result", response_model=Envelope[match_schemas.MatchDetail])
async def edit_result_endpoint(
    match_id: int,
    result_in: match_schemas.MatchResultRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    match, report = result_service.edit_result(db=db, match_id=match_id, result_in=result_in, current_user=current_user)
    detail = _match_detail(match, report)
    _broadcast_result(background_tasks, detail)
    return Envelope(message="Match result updated successfully", data=detail)


@router.post("/{match_id}/validate", response_model=Envelope[match_schemas.MatchDetail])
async def validate_report_endpoint(
    match_id: int,
    validation_in: match_schemas.ValidateReportRequest,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    match, report = result_service.validate_report(
        db=db, match_id=match_id, validation_in=validation_in, current_user=current_user
    )
    return Envelope(message="Match report updated successfully", data=_match_detail(match, report))


@router.post("/{match_id}/set-live", response_model=Envelope[match_schemas.MatchRead])
async def set_live_endpoint(
    match_id: int,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    match = result_service.set_live(db=db, match_id=match_id, current_user=current_user)
    return Envelope(message="Match is now live", data=match_schemas.MatchRead.model_validate(match))
