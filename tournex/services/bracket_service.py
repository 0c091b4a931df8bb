"""
Single-elimination bracket construction.

Participants are paired in the order they are given: (1, 2), (3, 4), ... An
odd count leaves the last participant alone, and that slot becomes a bye: a
match created already completed with its only occupant as winner. Byes are
never counted as wins.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tournex.core.database import utcnow
from tournex.core.exceptions import InvalidStateError
from tournex.core.permissions import ensure_can_manage
from tournex.models import match as match_model
from tournex.models import participant as participant_model
from tournex.models import tournament as tournament_model
from tournex.models import user as user_model
from tournex.models.enums import MatchStatus, ParticipantStatus, TournamentStatus
from tournex.services import match_store, tournament_service

logger = logging.getLogger(__name__)

GENERATABLE_STATUSES = {TournamentStatus.REGISTRATION_OPEN.value, TournamentStatus.REGISTRATION_CLOSED.value}


def pair_sequentially(participant_ids: Sequence[int]) -> List[Tuple[int, Optional[int]]]:
    """
    Pairs ids two by two in order. The second element is None for the
    trailing bye of an odd-sized list.
    """
    pairs = []
    for i in range(0, len(participant_ids), 2):
        if i + 1 < len(participant_ids):
            pairs.append((participant_ids[i], participant_ids[i + 1]))
        else:
            pairs.append((participant_ids[i], None))
    return pairs


def build_round(tournament: tournament_model.Tournament, round_num: int,
                participant_ids: Sequence[int]) -> List[match_model.Match]:
    """Unsaved Match rows for one round, numbered from 1."""
    now = utcnow()
    matches = []
    for match_number, (first, second) in enumerate(pair_sequentially(participant_ids), start=1):
        if second is None:
            matches.append(match_model.Match(
                tournament_id=tournament.id,
                round=round_num,
                match_number=match_number,
                participant1_id=first,
                participant2_id=None,
                winner_id=first,
                status=MatchStatus.COMPLETED.value,
                is_bye=True,
                referee_id=tournament.owner_id,
                completed_at=now,
            ))
        else:
            matches.append(match_model.Match(
                tournament_id=tournament.id,
                round=round_num,
                match_number=match_number,
                participant1_id=first,
                participant2_id=second,
                status=MatchStatus.PENDING.value,
                is_bye=False,
                referee_id=tournament.owner_id,
            ))
    return matches


def mark_bye_occupants(db: Session, matches: Sequence[match_model.Match]):
    bye_ids = [m.participant1_id for m in matches if m.is_bye]
    if bye_ids:
        db.query(participant_model.Participant)\
            .filter(participant_model.Participant.id.in_(bye_ids))\
            .update({participant_model.Participant.status: ParticipantStatus.CHECKED_IN.value}, synchronize_session=False)


def generate_bracket(db: Session, tournament_id: int, current_user: user_model.User) -> List[match_model.Match]:
    db_tournament = tournament_service.get_tournament_or_404(db, tournament_id)
    ensure_can_manage(db_tournament, current_user, "generate the bracket for this tournament")

    if db_tournament.status not in GENERATABLE_STATUSES:
        raise InvalidStateError("Bracket can only be generated while registration is open or closed")
    if db_tournament.bracket_generated:
        raise InvalidStateError("Bracket has already been generated")

    participants = db.query(participant_model.Participant).filter(
        participant_model.Participant.tournament_id == tournament_id,
        participant_model.Participant.status == ParticipantStatus.REGISTERED.value,
    ).order_by(participant_model.Participant.id).all()

    if len(participants) < 2:
        raise InvalidStateError("Not enough participants (minimum 2) to generate the bracket")

    matches = build_round(db_tournament, 1, [p.id for p in participants])
    try:
        match_store.bulk_insert(db, matches)
        mark_bye_occupants(db, matches)
        db_tournament.bracket_generated = True
        db_tournament.status = TournamentStatus.IN_PROGRESS.value
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidStateError("Bracket has already been generated")

    for match in matches:
        db.refresh(match)
    logger.info(f"Generated {len(matches)} first-round matches for tournament {tournament_id}")
    return matches
