import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tournex.core.exceptions import (
    CapacityExceededError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from tournex.core.permissions import ensure_can_manage
from tournex.models import participant as participant_model
from tournex.models import tournament as tournament_model
from tournex.models import user as user_model
from tournex.models.enums import ParticipantStatus, TournamentStatus
from tournex.schemas import notification_schemas
from tournex.services import match_store, notification_service, tournament_service

logger = logging.getLogger(__name__)

Participant = participant_model.Participant
Tournament = tournament_model.Tournament

BANNABLE_TOURNAMENT_STATUSES = {TournamentStatus.REGISTRATION_OPEN.value, TournamentStatus.IN_PROGRESS.value}


def get_participant(db: Session, participant_id: int) -> Optional[Participant]:
    return db.query(Participant).filter(Participant.id == participant_id).first()


def get_tournament_participant_or_404(db: Session, tournament_id: int, participant_id: int) -> Participant:
    participant = get_participant(db, participant_id)
    if not participant or participant.tournament_id != tournament_id:
        raise NotFoundError("Participant not found in this tournament")
    return participant


def banned_ids(db: Session, tournament_id: int, participant_ids: Iterable[int]) -> Set[int]:
    """The subset of ``participant_ids`` banned from the tournament."""
    participant_ids = list(participant_ids)
    if not participant_ids:
        return set()
    rows = db.query(Participant.id).filter(
        Participant.tournament_id == tournament_id,
        Participant.id.in_(participant_ids),
        Participant.status == ParticipantStatus.BANNED.value,
    ).all()
    return {row.id for row in rows}


def register_participant(db: Session, tournament_id: int, current_user: user_model.User) -> Participant:
    db_tournament = tournament_service.get_tournament_or_404(db, tournament_id)

    if db_tournament.status != TournamentStatus.REGISTRATION_OPEN.value:
        raise InvalidStateError("Tournament registration is not open")

    if db_tournament.owner_id == current_user.id:
        raise InvalidInputError("Tournament owner cannot register as participant")

    existing = db.query(Participant).filter(
        Participant.tournament_id == tournament_id,
        Participant.user_id == current_user.id,
    ).first()
    if existing:
        if existing.status == ParticipantStatus.BANNED.value:
            raise InvalidInputError("You are banned from this tournament")
        raise InvalidInputError("Already registered for this tournament")

    # Conditional increment: only succeeds while a seat is free, so concurrent
    # registrations can never push the count past capacity
    seats_taken = db.query(Tournament).filter(
        Tournament.id == tournament_id,
        Tournament.current_participants < Tournament.max_participants,
    ).update(
        {Tournament.current_participants: Tournament.current_participants + 1},
        synchronize_session=False,
    )
    if not seats_taken:
        db.rollback()
        raise CapacityExceededError("Tournament is full")

    db_participant = Participant(
        tournament_id=tournament_id,
        user_id=current_user.id,
        status=ParticipantStatus.REGISTERED.value,
        wins=0,
        losses=0,
    )
    db.add(db_participant)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidInputError("Already registered for this tournament")

    db.refresh(db_participant)
    logger.info(f"User {current_user.id} registered in tournament {tournament_id} as participant {db_participant.id}")
    return db_participant


def ban_participant(db: Session, tournament_id: int, participant_id: int, current_user: user_model.User) -> Participant:
    db_tournament = tournament_service.get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "ban participants from this tournament")

    if db_tournament.status not in BANNABLE_TOURNAMENT_STATUSES:
        raise InvalidStateError("Participants can only be banned while registration is open or the tournament is in progress")

    db_participant = get_tournament_participant_or_404(db, tournament_id, participant_id)
    if db_participant.status == ParticipantStatus.BANNED.value:
        raise InvalidInputError("Participant is already banned")

    if match_store.active_matches_for_participant(db, participant_id):
        raise InvalidStateError("Participant has a pending or in-progress match")

    db_participant.status = ParticipantStatus.BANNED.value
    db.query(Tournament).filter(
        Tournament.id == tournament_id,
        Tournament.current_participants > 0,
    ).update(
        {Tournament.current_participants: Tournament.current_participants - 1},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(db_participant)
    logger.info(f"Participant {participant_id} banned from tournament {tournament_id} by user {current_user.id}")

    notification_service.notify_users(db, [
        notification_schemas.NotificationCreate(
            user_id=db_participant.user_id,
            type="participant_banned",
            title="Banned from tournament",
            message=f"You have been banned from {db_tournament.name}",
            related_entity_type="tournament",
            related_entity_id=tournament_id,
        )
    ])
    return db_participant


def list_participants(db: Session, tournament_id: int) -> List[Participant]:
    tournament_service.get_tournament_or_404(db, tournament_id)
    return db.query(Participant)\
        .filter(Participant.tournament_id == tournament_id)\
        .order_by(Participant.created_at, Participant.id)\
        .all()
