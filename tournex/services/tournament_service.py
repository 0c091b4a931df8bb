import logging
import math
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from tournex.core.database import utcnow
from tournex.core.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from tournex.core.permissions import ensure_can_manage
from tournex.models import participant as participant_model
from tournex.models import tournament as tournament_model
from tournex.models import user as user_model
from tournex.models.enums import TERMINAL_TOURNAMENT_STATUSES, ParticipantStatus, TournamentStatus
from tournex.schemas import tournament_schemas
from tournex.schemas.common import Pagination
from tournex.services import match_store

logger = logging.getLogger(__name__)

Tournament = tournament_model.Tournament

LIVE_PARTICIPANT_STATUSES = {ParticipantStatus.REGISTERED.value, ParticipantStatus.CHECKED_IN.value}
NULLABLE_FIELDS = {"description", "prize", "rules"}


def get_tournament(db: Session, tournament_id: int) -> Optional[Tournament]:
    return db.query(Tournament).filter(Tournament.id == tournament_id).first()


def get_tournament_or_404(db: Session, tournament_id: int) -> Tournament:
    tournament = get_tournament(db, tournament_id)
    if not tournament:
        raise NotFoundError("Tournament not found")
    return tournament


def ensure_not_terminal(tournament: Tournament):
    if tournament.status in TERMINAL_TOURNAMENT_STATUSES:
        raise InvalidStateError(f"Tournament is {tournament.status}")


def validate_schedule(registration_start: datetime, registration_end: datetime,
                      start_date: datetime, end_date: datetime):
    """Registration must close before play starts, and every window must be non-empty."""
    errors = []
    if registration_end <= registration_start:
        errors.append({"field": "registration_end", "message": "Registration end date must be after registration start date"})
    if start_date <= registration_end:
        errors.append({"field": "start_date", "message": "Start date must be after registration end date"})
    if end_date <= start_date:
        errors.append({"field": "end_date", "message": "End date must be after start date"})
    if errors:
        raise InvalidInputError("Invalid tournament schedule", errors=errors)


def initial_status(registration_start: datetime, registration_end: datetime, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    if registration_start <= now < registration_end:
        return TournamentStatus.REGISTRATION_OPEN.value
    if now >= registration_end:
        return TournamentStatus.REGISTRATION_CLOSED.value
    return TournamentStatus.PENDING.value


def create_tournament(db: Session, tournament_in: tournament_schemas.TournamentCreate, creator: user_model.User) -> Tournament:
    validate_schedule(tournament_in.registration_start, tournament_in.registration_end,
                      tournament_in.start_date, tournament_in.end_date)

    db_tournament = Tournament(
        **tournament_in.model_dump(),
        current_participants=0,
        status=initial_status(tournament_in.registration_start, tournament_in.registration_end),
        owner_id=creator.id,
        created_by_id=creator.id,
    )
    db.add(db_tournament)
    db.commit()
    db.refresh(db_tournament)
    logger.info(f"Tournament {db_tournament.id} created by user {creator.id} with status {db_tournament.status}")
    return db_tournament


def get_tournaments(db: Session, status: Optional[str] = None, game: Optional[str] = None,
                    page: int = 1, limit: int = 10) -> Tuple[List[Tournament], Pagination]:
    query = db.query(Tournament)
    if status:
        query = query.filter(Tournament.status == status)
    if game:
        query = query.filter(Tournament.game.ilike(f"%{game}%"))

    total = query.count()
    tournaments = query.order_by(Tournament.start_date.desc(), Tournament.id.desc())\
        .offset((page - 1) * limit)\
        .limit(limit)\
        .all()
    pagination = Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)
    return tournaments, pagination


def update_tournament(db: Session, tournament_id: int, tournament_in: tournament_schemas.TournamentUpdate,
                      current_user: user_model.User) -> Tournament:
    db_tournament = get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "update this tournament")
    ensure_not_terminal(db_tournament)

    update_data = tournament_in.model_dump(exclude_unset=True)
    # Only the free-text fields may be cleared
    update_data = {k: v for k, v in update_data.items() if v is not None or k in NULLABLE_FIELDS}

    new_capacity = update_data.get("max_participants")
    if new_capacity is not None and new_capacity != db_tournament.max_participants:
        if db_tournament.status == TournamentStatus.IN_PROGRESS.value:
            raise InvalidStateError("Cannot change max participants once the tournament is in progress")
        if new_capacity < db_tournament.current_participants:
            raise InvalidInputError(
                "Max participants cannot be lower than the current number of participants",
                errors=[{"field": "max_participants", "message": f"Must be at least {db_tournament.current_participants}"}],
            )

    schedule = {
        field: update_data.get(field, getattr(db_tournament, field))
        for field in ("registration_start", "registration_end", "start_date", "end_date")
    }
    validate_schedule(**schedule)

    for key, value in update_data.items():
        setattr(db_tournament, key, value)

    db.commit()
    db.refresh(db_tournament)
    return db_tournament


def delete_tournament(db: Session, tournament_id: int, current_user: user_model.User):
    db_tournament = get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "delete this tournament")
    if db_tournament.status == TournamentStatus.IN_PROGRESS.value:
        raise InvalidStateError("Cannot delete a tournament that is in progress")

    db_tournament.winner_id = None
    db.flush()
    match_store.delete_for_tournament(db, tournament_id)
    db.query(participant_model.Participant)\
        .filter(participant_model.Participant.tournament_id == tournament_id)\
        .delete(synchronize_session=False)
    db.query(Tournament).filter(Tournament.id == tournament_id).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Tournament {tournament_id} deleted by user {current_user.id}")


def open_registration(db: Session, tournament_id: int, registration_in: tournament_schemas.OpenRegistrationRequest,
                      current_user: user_model.User) -> Tournament:
    db_tournament = get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "modify this tournament")
    if db_tournament.status != TournamentStatus.PENDING.value:
        raise InvalidStateError("Registration can only be opened for pending tournaments")

    registration_start = registration_in.registration_start or db_tournament.registration_start
    registration_end = registration_in.registration_end or db_tournament.registration_end
    validate_schedule(registration_start, registration_end, db_tournament.start_date, db_tournament.end_date)

    db_tournament.registration_start = registration_start
    db_tournament.registration_end = registration_end
    db_tournament.status = TournamentStatus.REGISTRATION_OPEN.value
    db.commit()
    db.refresh(db_tournament)
    return db_tournament


def close_registration(db: Session, tournament_id: int, current_user: user_model.User) -> Tournament:
    db_tournament = get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "modify this tournament")
    if db_tournament.status != TournamentStatus.REGISTRATION_OPEN.value:
        raise InvalidStateError("Registration is not open")

    db_tournament.status = TournamentStatus.REGISTRATION_CLOSED.value
    db.commit()
    db.refresh(db_tournament)
    return db_tournament


def start_tournament(db: Session, tournament_id: int, current_user: user_model.User) -> Tournament:
    db_tournament = get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "start this tournament")
    ensure_not_terminal(db_tournament)
    if not db_tournament.bracket_generated:
        raise InvalidStateError("Bracket must be generated before starting the tournament")

    live_participants = db.query(participant_model.Participant).filter(
        participant_model.Participant.tournament_id == tournament_id,
        participant_model.Participant.status.in_(LIVE_PARTICIPANT_STATUSES),
    ).count()
    if live_participants < 2:
        raise InvalidStateError("At least 2 participants are required to start the tournament")

    # Bracket generation already moves the tournament into play
    if db_tournament.status != TournamentStatus.IN_PROGRESS.value:
        db_tournament.status = TournamentStatus.IN_PROGRESS.value
        db.commit()
        db.refresh(db_tournament)
    return db_tournament


def cancel_tournament(db: Session, tournament_id: int, current_user: user_model.User) -> Tournament:
    db_tournament = get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "cancel this tournament")
    ensure_not_terminal(db_tournament)

    db_tournament.status = TournamentStatus.CANCELLED.value
    db.commit()
    db.refresh(db_tournament)
    logger.info(f"Tournament {tournament_id} cancelled by user {current_user.id}")
    return db_tournament


def list_matches(db: Session, tournament_id: int, round: Optional[int] = None):
    get_tournament_or_404(db, tournament_id)
    return match_store.list_tournament_matches(db, tournament_id, round=round)
