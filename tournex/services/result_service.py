import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tournex.core.database import utcnow
from tournex.core.exceptions import (
    ConcurrentModificationError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from tournex.core.permissions import ensure_can_manage
from tournex.models import match as match_model
from tournex.models import match_report as report_model
from tournex.models import tournament as tournament_model
from tournex.models import user as user_model
from tournex.models.enums import MatchStatus, ParticipantStatus, TournamentStatus
from tournex.schemas import match_schemas, notification_schemas
from tournex.services import match_store, notification_service, participant_service, tournament_service

logger = logging.getLogger(__name__)

REPORTABLE_STATUSES = {MatchStatus.PENDING.value, MatchStatus.IN_PROGRESS.value, MatchStatus.DISPUTED.value}
EDITABLE_STATUSES = {MatchStatus.IN_PROGRESS.value, MatchStatus.COMPLETED.value}


def _load_match(db: Session, match_id: int) -> Tuple[match_model.Match, tournament_model.Tournament]:
    match = match_store.get_match_or_404(db, match_id)
    tournament = tournament_service.get_tournament_or_404(db, match.tournament_id)
    return match, tournament


def _check_playable(tournament: tournament_model.Tournament, match: match_model.Match, current_user: user_model.User):
    ensure_can_manage(tournament, current_user, "manage results in this tournament")
    if tournament.status != TournamentStatus.IN_PROGRESS.value:
        raise InvalidStateError("Tournament is not in progress")
    if match.is_bye or match.participant1_id is None or match.participant2_id is None:
        raise InvalidStateError("Match does not have two participants")


def _check_outcome(match: match_model.Match, result_in: match_schemas.MatchResultRequest):
    winner_id = result_in.winner_id
    if winner_id not in (match.participant1_id, match.participant2_id):
        raise InvalidInputError(
            "Winner must be one of the match participants",
            errors=[{"field": "winner_id", "message": "Not a participant of this match"}],
        )

    score = result_in.score
    if score.participant1_score == score.participant2_score:
        raise InvalidInputError("Scores cannot be tied", errors=[{"field": "score", "message": "Scores must differ"}])

    if winner_id == match.participant1_id:
        winner_score, loser_score = score.participant1_score, score.participant2_score
    else:
        winner_score, loser_score = score.participant2_score, score.participant1_score
    if winner_score <= loser_score:
        raise InvalidInputError(
            "Winner must have the higher score",
            errors=[{"field": "score", "message": "Winner's score must be higher than the loser's"}],
        )


def is_round_frozen(db: Session, match: match_model.Match) -> bool:
    """A round is frozen once it is fully completed and the next round exists."""
    round_matches = match_store.list_round(db, match.tournament_id, match.round)
    round_completed = all(m.status == MatchStatus.COMPLETED.value for m in round_matches)
    return round_completed and match_store.count_round(db, match.tournament_id, match.round + 1) > 0


def _advance_winner(db: Session, match: match_model.Match, winner_id: int, previous_winner_id: Optional[int]):
    if match.next_match_id is None:
        return
    next_match = match_store.get_match(db, match.next_match_id)
    if next_match is None:
        return

    if previous_winner_id is not None and previous_winner_id != winner_id:
        if next_match.participant1_id == previous_winner_id:
            next_match.participant1_id = winner_id
            return
        if next_match.participant2_id == previous_winner_id:
            next_match.participant2_id = winner_id
            return

    if winner_id in next_match.participant_ids:
        return
    if next_match.participant1_id is None:
        next_match.participant1_id = winner_id
    elif next_match.participant2_id is None:
        next_match.participant2_id = winner_id


def _set_status(participant, new_status: ParticipantStatus):
    if participant.status != ParticipantStatus.BANNED.value:
        participant.status = new_status.value


def _apply_outcome(db: Session, match: match_model.Match, result_in: match_schemas.MatchResultRequest):
    """
    Writes the result onto the match and keeps participant standings in step.
    A first result counts a win and a loss; a changed winner moves both
    counters back before counting the new outcome. A banned participant keeps
    its status whatever the result.
    """
    previous_winner_id = match.winner_id
    winner_id = result_in.winner_id
    winner = participant_service.get_participant(db, winner_id)
    loser = participant_service.get_participant(db, match.opponent_of(winner_id))

    if previous_winner_id is None:
        _set_status(winner, ParticipantStatus.CHECKED_IN)
        winner.wins += 1
        _set_status(loser, ParticipantStatus.ELIMINATED)
        loser.losses += 1
    elif previous_winner_id != winner_id:
        # loser is the previous winner here
        _set_status(loser, ParticipantStatus.ELIMINATED)
        loser.wins = max(loser.wins - 1, 0)
        loser.losses += 1
        _set_status(winner, ParticipantStatus.CHECKED_IN)
        winner.wins += 1
        winner.losses = max(winner.losses - 1, 0)

    match.winner_id = winner_id
    match.participant1_score = result_in.score.participant1_score
    match.participant2_score = result_in.score.participant2_score
    match.status = MatchStatus.COMPLETED.value
    match.completed_at = utcnow()
    if result_in.notes is not None:
        match.notes = result_in.notes

    _advance_winner(db, match, winner_id, previous_winner_id)


def _commit_match(db: Session, match_id: int):
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning(f"Lost concurrent update on match {match_id}")
        raise ConcurrentModificationError("Match was modified concurrently, reload and retry")


def _notify_participants(db: Session, match: match_model.Match, notification_type: str, title: str, message: str):
    notifications = []
    for participant_id in match.participant_ids:
        participant = participant_service.get_participant(db, participant_id)
        if participant:
            notifications.append(notification_schemas.NotificationCreate(
                user_id=participant.user_id,
                type=notification_type,
                title=title,
                message=message,
                related_entity_type="match",
                related_entity_id=match.id,
            ))
    notification_service.notify_users(db, notifications)


def report_result(db: Session, match_id: int, result_in: match_schemas.MatchResultRequest,
                  current_user: user_model.User) -> Tuple[match_model.Match, report_model.MatchReport]:
    db_match, db_tournament = _load_match(db, match_id)
    _check_playable(db_tournament, db_match, current_user)
    if db_match.status not in REPORTABLE_STATUSES:
        raise InvalidStateError(f"Cannot report a result for a match that is {db_match.status}")
    _check_outcome(db_match, result_in)

    now = utcnow()
    # Reports filed by the owner or a super admin are validated on creation
    db_report = report_model.MatchReport(
        match_id=db_match.id,
        reported_by_id=current_user.id,
        winner_id=result_in.winner_id,
        participant1_score=result_in.score.participant1_score,
        participant2_score=result_in.score.participant2_score,
        notes=result_in.notes,
        validated=True,
        validated_by_id=current_user.id,
        validated_at=now,
    )
    db.add(db_report)
    _apply_outcome(db, db_match, result_in)
    _commit_match(db, match_id)

    db.refresh(db_match)
    db.refresh(db_report)
    logger.info(f"Match {match_id} reported by user {current_user.id}: winner {db_match.winner_id}")

    _notify_participants(db, db_match, "match_reported", "Match result reported",
                         f"The result of round {db_match.round} match {db_match.match_number} has been reported")
    return db_match, db_report


def edit_result(db: Session, match_id: int, result_in: match_schemas.MatchResultRequest,
                current_user: user_model.User) -> Tuple[match_model.Match, report_model.MatchReport]:
    db_match, db_tournament = _load_match(db, match_id)
    _check_playable(db_tournament, db_match, current_user)
    if db_match.status not in EDITABLE_STATUSES:
        raise InvalidStateError(f"Cannot edit the result of a match that is {db_match.status}")
    if is_round_frozen(db, db_match):
        raise InvalidStateError("Cannot edit a result once the next round has been generated")
    _check_outcome(db_match, result_in)

    db_report = match_store.latest_report(db, match_id)
    if db_report is None:
        db_report = report_model.MatchReport(match_id=db_match.id, reported_by_id=current_user.id)
        db.add(db_report)
    db_report.winner_id = result_in.winner_id
    db_report.participant1_score = result_in.score.participant1_score
    db_report.participant2_score = result_in.score.participant2_score
    if result_in.notes is not None:
        db_report.notes = result_in.notes
    db_report.validated = True
    db_report.validated_by_id = current_user.id
    db_report.validated_at = utcnow()

    _apply_outcome(db, db_match, result_in)
    _commit_match(db, match_id)

    db.refresh(db_match)
    db.refresh(db_report)
    logger.info(f"Match {match_id} result edited by user {current_user.id}: winner {db_match.winner_id}")

    _notify_participants(db, db_match, "match_result_updated", "Match result updated",
                         f"The result of round {db_match.round} match {db_match.match_number} has been corrected")
    return db_match, db_report


def set_live(db: Session, match_id: int, current_user: user_model.User) -> match_model.Match:
    db_match, db_tournament = _load_match(db, match_id)
    _check_playable(db_tournament, db_match, current_user)
    if db_match.status != MatchStatus.PENDING.value:
        raise InvalidStateError("Only pending matches can be set live")

    db_match.status = MatchStatus.IN_PROGRESS.value
    _commit_match(db, match_id)
    db.refresh(db_match)
    return db_match


def validate_report(db: Session, match_id: int, validation_in: match_schemas.ValidateReportRequest,
                    current_user: user_model.User) -> Tuple[match_model.Match, report_model.MatchReport]:
    db_match, db_tournament = _load_match(db, match_id)
    ensure_can_manage(db_tournament, current_user, "validate reports in this tournament")
    tournament_service.ensure_not_terminal(db_tournament)

    db_report = match_store.latest_report(db, match_id)
    if db_report is None:
        raise NotFoundError("No report found for this match")

    if validation_in.disputed:
        if not validation_in.dispute_reason:
            raise InvalidInputError(
                "A dispute reason is required",
                errors=[{"field": "dispute_reason", "message": "Required when disputing a report"}],
            )
        if db_match.status != MatchStatus.COMPLETED.value:
            raise InvalidStateError("Only completed matches can be disputed")
        if is_round_frozen(db, db_match):
            raise InvalidStateError("Cannot dispute a result once the next round has been generated")

    if validation_in.validated is not None:
        db_report.validated = validation_in.validated
        db_report.validated_by_id = current_user.id
        db_report.validated_at = utcnow()

    if validation_in.disputed:
        db_report.disputed = True
        db_report.dispute_reason = validation_in.dispute_reason
        db_match.status = MatchStatus.DISPUTED.value

    _commit_match(db, match_id)
    db.refresh(db_match)
    db.refresh(db_report)

    if validation_in.disputed:
        logger.info(f"Match {match_id} disputed by user {current_user.id}")
        _notify_participants(db, db_match, "match_disputed", "Match result disputed",
                             f"The result of round {db_match.round} match {db_match.match_number} is under dispute")
    return db_match, db_report


def get_match_detail(db: Session, match_id: int) -> Tuple[match_model.Match, Optional[report_model.MatchReport]]:
    db_match = match_store.get_match_or_404(db, match_id)
    return db_match, match_store.latest_report(db, match_id)
