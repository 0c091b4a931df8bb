"""Data access for matches and match reports. No business rules live here."""

from typing import Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tournex.core.exceptions import NotFoundError
from tournex.models import match as match_model
from tournex.models import match_report as report_model
from tournex.models.enums import ACTIVE_MATCH_STATUSES

Match = match_model.Match
MatchReport = report_model.MatchReport


def bulk_insert(db: Session, matches: Iterable[Match]) -> List[Match]:
    """Add matches to the session and flush so their ids are assigned. The caller commits."""
    matches = list(matches)
    db.add_all(matches)
    db.flush()
    return matches


def get_match(db: Session, match_id: int) -> Optional[Match]:
    return db.query(Match).filter(Match.id == match_id).first()


def get_match_or_404(db: Session, match_id: int) -> Match:
    match = get_match(db, match_id)
    if not match:
        raise NotFoundError("Match not found")
    return match


def list_tournament_matches(db: Session, tournament_id: int, round: Optional[int] = None) -> List[Match]:
    query = db.query(Match).filter(Match.tournament_id == tournament_id)
    if round is not None:
        query = query.filter(Match.round == round)
    return query.order_by(Match.round, Match.match_number).all()


def list_round(db: Session, tournament_id: int, round: int) -> List[Match]:
    return list_tournament_matches(db, tournament_id, round=round)


def count_round(db: Session, tournament_id: int, round: int) -> int:
    return db.query(Match).filter(Match.tournament_id == tournament_id, Match.round == round).count()


def max_round(db: Session, tournament_id: int) -> int:
    """Highest round with at least one match, 0 when no bracket exists."""
    return db.query(func.max(Match.round)).filter(Match.tournament_id == tournament_id).scalar() or 0


def active_matches_for_participant(db: Session, participant_id: int) -> List[Match]:
    return db.query(Match).filter(
        or_(Match.participant1_id == participant_id, Match.participant2_id == participant_id),
        Match.status.in_(ACTIVE_MATCH_STATUSES),
    ).all()


def latest_report(db: Session, match_id: int) -> Optional[MatchReport]:
    return db.query(MatchReport)\
        .filter(MatchReport.match_id == match_id)\
        .order_by(MatchReport.created_at.desc(), MatchReport.id.desc())\
        .first()


def delete_for_tournament(db: Session, tournament_id: int) -> int:
    """Bulk-remove every match and report of a tournament. The caller commits."""
    match_ids = db.query(Match.id).filter(Match.tournament_id == tournament_id)
    db.query(MatchReport).filter(MatchReport.match_id.in_(match_ids.scalar_subquery())).delete(synchronize_session=False)
    # Drop forward pointers first so no row references a match being removed
    db.query(Match).filter(Match.tournament_id == tournament_id).update({Match.next_match_id: None}, synchronize_session=False)
    return db.query(Match).filter(Match.tournament_id == tournament_id).delete(synchronize_session=False)
