from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from tournex.api.dependencies import get_db
from tournex.core import realtime
from tournex.models import user as user_model
from tournex.schemas import match_schemas, participant_schemas, tournament_schemas
from tournex.schemas.common import Envelope
from tournex.services import (
    auth_service,
    bracket_service,
    participant_service,
    phase_service,
    tournament_service,
)

router = APIRouter()


def _tournament_out(tournament) -> tournament_schemas.TournamentRead:
    return tournament_schemas.TournamentRead.model_validate(tournament)


def _broadcast_tournament(background_tasks: BackgroundTasks, tournament_out: tournament_schemas.TournamentRead):
    background_tasks.add_task(
        realtime.emit_tournament_event,
        tournament_out.id,
        realtime.TOURNAMENT_UPDATED,
        tournament_out.model_dump(mode="json"),
    )


@router.post("/", response_model=Envelope[tournament_schemas.TournamentRead], status_code=status.HTTP_201_CREATED)
async def create_tournament_endpoint(
    tournament_in: tournament_schemas.TournamentCreate,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = tournament_service.create_tournament(db=db, tournament_in=tournament_in, creator=current_user)
    return Envelope(message="Tournament created successfully", data=_tournament_out(tournament))


@router.get("/", response_model=tournament_schemas.TournamentList)
async def list_tournaments_endpoint(
    status_filter: Optional[str] = Query(None, alias="status"),
    game: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    tournaments, pagination = tournament_service.get_tournaments(
        db=db, status=status_filter, game=game, page=page, limit=limit
    )
    return tournament_schemas.TournamentList(
        tournaments=[_tournament_out(t) for t in tournaments],
        pagination=pagination,
    )


@router.get("/{tournament_id}", response_model=tournament_schemas.TournamentRead)
async def get_tournament_endpoint(
    tournament_id: int,
    db: Session = Depends(get_db),
):
    return tournament_service.get_tournament_or_404(db=db, tournament_id=tournament_id)


@router.put("/{tournament_id}", response_model=Envelope[tournament_schemas.TournamentRead])
async def update_tournament_endpoint(
    tournament_id: int,
    tournament_in: tournament_schemas.TournamentUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = tournament_service.update_tournament(
        db=db, tournament_id=tournament_id, tournament_in=tournament_in, current_user=current_user
    )
    tournament_out = _tournament_out(tournament)
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message="Tournament updated successfully", data=tournament_out)


@router.delete("/{tournament_id}", response_model=Envelope)
async def delete_tournament_endpoint(
    tournament_id: int,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament_service.delete_tournament(db=db, tournament_id=tournament_id, current_user=current_user)
    return Envelope(message="Tournament deleted successfully")


@router.post("/{tournament_id}/open-registration", response_model=Envelope[tournament_schemas.TournamentRead])
async def open_registration_endpoint(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    registration_in: Optional[tournament_schemas.OpenRegistrationRequest] = None,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = tournament_service.open_registration(
        db=db,
        tournament_id=tournament_id,
        registration_in=registration_in or tournament_schemas.OpenRegistrationRequest(),
        current_user=current_user,
    )
    tournament_out = _tournament_out(tournament)
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message="Registration opened successfully", data=tournament_out)


@router.post("/{tournament_id}/close-registration", response_model=Envelope[tournament_schemas.TournamentRead])
async def close_registration_endpoint(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = tournament_service.close_registration(db=db, tournament_id=tournament_id, current_user=current_user)
    tournament_out = _tournament_out(tournament)
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message="Registration closed successfully", data=tournament_out)


@router.post("/{tournament_id}/register", response_model=Envelope[participant_schemas.ParticipantRead],
             status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    participant = participant_service.register_participant(db=db, tournament_id=tournament_id, current_user=current_user)
    participant_out = participant_schemas.ParticipantRead.model_validate(participant)
    background_tasks.add_task(
        realtime.emit_tournament_event,
        tournament_id,
        realtime.PARTICIPANT_JOINED,
        participant_out.model_dump(mode="json"),
    )
    return Envelope(message="Successfully registered for the tournament", data=participant_out)


@router.post("/{tournament_id}/generate-bracket", response_model=Envelope[List[match_schemas.MatchRead]],
             status_code=status.HTTP_201_CREATED)
async def generate_bracket_endpoint(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    matches = bracket_service.generate_bracket(db=db, tournament_id=tournament_id, current_user=current_user)
    matches_out = [match_schemas.MatchRead.model_validate(m) for m in matches]
    tournament_out = _tournament_out(tournament_service.get_tournament_or_404(db, tournament_id))
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message="Bracket generated successfully", data=matches_out)


@router.post("/{tournament_id}/start", response_model=Envelope[tournament_schemas.TournamentRead])
async def start_tournament_endpoint(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = tournament_service.start_tournament(db=db, tournament_id=tournament_id, current_user=current_user)
    tournament_out = _tournament_out(tournament)
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message="Tournament started successfully", data=tournament_out)


@router.post("/{tournament_id}/cancel", response_model=Envelope[tournament_schemas.TournamentRead])
async def cancel_tournament_endpoint(
    tournament_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = tournament_service.cancel_tournament(db=db, tournament_id=tournament_id, current_user=current_user)
    tournament_out = _tournament_out(tournament)
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message="Tournament cancelled successfully", data=tournament_out)


@router.post("/{tournament_id}/ban/{participant_id}", response_model=Envelope[participant_schemas.ParticipantRead])
async def ban_participant_endpoint(
    tournament_id: int,
    participant_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    participant = participant_service.ban_participant(
        db=db, tournament_id=tournament_id, participant_id=participant_id, current_user=current_user
    )
    participant_out = participant_schemas.ParticipantRead.model_validate(participant)
    background_tasks.add_task(
        realtime.emit_tournament_event,
        tournament_id,
        realtime.PARTICIPANT_BANNED,
        participant_out.model_dump(mode="json"),
    )
    return Envelope(message="Participant banned successfully", data=participant_out)


@router.post("/{tournament_id}/generate-next-phase", response_model=Envelope[List[match_schemas.MatchRead]],
             status_code=status.HTTP_201_CREATED)
async def generate_next_phase_endpoint(
    tournament_id: int,
    round_in: tournament_schemas.RoundRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    matches = phase_service.generate_next_phase(
        db=db, tournament_id=tournament_id, round_num=round_in.round, current_user=current_user
    )
    matches_out = [match_schemas.MatchRead.model_validate(m) for m in matches]
    tournament_out = _tournament_out(tournament_service.get_tournament_or_404(db, tournament_id))
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message=f"Round {round_in.round + 1} generated successfully", data=matches_out)


@router.post("/{tournament_id}/finalize", response_model=Envelope[tournament_schemas.TournamentRead])
async def finalize_tournament_endpoint(
    tournament_id: int,
    round_in: tournament_schemas.RoundRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: user_model.User = Depends(auth_service.get_current_user),
):
    tournament = phase_service.finalize_tournament(
        db=db, tournament_id=tournament_id, round_num=round_in.round, current_user=current_user
    )
    tournament_out = _tournament_out(tournament)
    _broadcast_tournament(background_tasks, tournament_out)
    return Envelope(message="Tournament finalized successfully", data=tournament_out)


@router.get("/{tournament_id}/participants", response_model=List[participant_schemas.ParticipantRead])
async def list_participants_endpoint(
    tournament_id: int,
    db: Session = Depends(get_db),
):
    return participant_service.list_participants(db=db, tournament_id=tournament_id)


@router.get("/{tournament_id}/matches", response_model=List[match_schemas.MatchRead])
async def list_matches_endpoint(
    tournament_id: int,
    round: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return tournament_service.list_matches(db=db, tournament_id=tournament_id, round=round)
