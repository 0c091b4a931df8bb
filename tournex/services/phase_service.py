import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tournex.core.exceptions import ConcurrentModificationError, InvalidStateError
from tournex.core.permissions import ensure_can_manage
from tournex.models import match as match_model
from tournex.models import tournament as tournament_model
from tournex.models import user as user_model
from tournex.models.enums import MatchStatus, ParticipantStatus, TournamentStatus
from tournex.schemas import notification_schemas
from tournex.services import (
    bracket_service,
    match_store,
    notification_service,
    participant_service,
    tournament_service,
)

logger = logging.getLogger(__name__)


def _ensure_in_progress(tournament: tournament_model.Tournament):
    if tournament.status != TournamentStatus.IN_PROGRESS.value:
        raise InvalidStateError("Tournament is not in progress")


def generate_next_phase(db: Session, tournament_id: int, round_num: int,
                        current_user: user_model.User) -> List[match_model.Match]:
    """
    Builds round ``round_num + 1`` from the winners of ``round_num`` and links
    each finished match to the match its winner advances into.
    """
    db_tournament = tournament_service.get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "generate the next phase of this tournament")
    _ensure_in_progress(db_tournament)

    current_round = match_store.list_round(db, tournament_id, round_num)
    if not current_round:
        raise InvalidStateError(f"Round {round_num} has no matches")
    if any(m.status != MatchStatus.COMPLETED.value for m in current_round):
        raise InvalidStateError(f"All matches of round {round_num} must be completed")
    if match_store.count_round(db, tournament_id, round_num + 1) > 0:
        raise InvalidStateError(f"Round {round_num + 1} has already been generated")

    decided = [m for m in current_round if m.winner_id is not None]
    if len(decided) < 2:
        raise InvalidStateError("Not enough winners to generate a new round")

    # winners banned since their match do not advance
    banned = participant_service.banned_ids(db, tournament_id, [m.winner_id for m in decided])
    feeding = [m for m in decided if m.winner_id not in banned]
    if not feeding:
        raise InvalidStateError("Not enough winners to generate a new round")

    next_round = bracket_service.build_round(db_tournament, round_num + 1, [m.winner_id for m in feeding])
    try:
        match_store.bulk_insert(db, next_round)
        # advancing matches 2k and 2k+1 feed match k of the next round (0-based)
        for index, match in enumerate(feeding):
            match.next_match_id = next_round[index // 2].id
        bracket_service.mark_bye_occupants(db, next_round)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidStateError(f"Round {round_num + 1} has already been generated")
    except StaleDataError:
        db.rollback()
        raise ConcurrentModificationError(f"A match of round {round_num} was modified concurrently, reload and retry")

    for match in next_round:
        db.refresh(match)
    logger.info(f"Generated round {round_num + 1} ({len(next_round)} matches) for tournament {tournament_id}")
    return next_round


def finalize_tournament(db: Session, tournament_id: int, round_num: int,
                        current_user: user_model.User) -> tournament_model.Tournament:
    db_tournament = tournament_service.get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "finalize this tournament")
    _ensure_in_progress(db_tournament)

    final_round = match_store.list_round(db, tournament_id, round_num)
    if len(final_round) != 1:
        raise InvalidStateError(f"Round {round_num} must contain exactly one match to finalize")
    if round_num != match_store.max_round(db, tournament_id):
        raise InvalidStateError(f"Round {round_num} is not the last round")

    final_match = final_round[0]
    if final_match.status != MatchStatus.COMPLETED.value or final_match.winner_id is None:
        raise InvalidStateError("The final match must be completed with a winner")

    champion = participant_service.get_participant(db, final_match.winner_id)
    champion.status = ParticipantStatus.WINNER.value
    db_tournament.winner_id = champion.id
    db_tournament.status = TournamentStatus.COMPLETED.value
    db.commit()
    db.refresh(db_tournament)
    logger.info(f"Tournament {tournament_id} finalized, winner participant {champion.id}")

    notification_service.notify_users(db, [
        notification_schemas.NotificationCreate(
            user_id=champion.user_id,
            type="tournament_won",
            title="Tournament won",
            message=f"Congratulations! You won {db_tournament.name}",
            related_entity_type="tournament",
            related_entity_id=tournament_id,
        )
    ])
    return db_tournament
