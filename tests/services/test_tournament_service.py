from datetime import timedelta

import pytest

from tournex.core.database import utcnow
from tournex.core.exceptions import InvalidInputError, InvalidStateError, NotFoundError, UnauthorizedError
from tournex.models import Match, Participant, Tournament
from tournex.models.enums import TournamentStatus
from tournex.schemas.tournament_schemas import OpenRegistrationRequest, TournamentCreate, TournamentUpdate
from tournex.services import participant_service, tournament_service


def tournament_payload(registration_start_in=timedelta(days=-1), **overrides):
    now = utcnow()
    registration_start = now + registration_start_in
    data = dict(
        name="Autumn Clash",
        game="Valorant",
        description="Open bracket",
        max_participants=8,
        registration_start=registration_start,
        registration_end=registration_start + timedelta(days=2),
        start_date=registration_start + timedelta(days=3),
        end_date=registration_start + timedelta(days=4),
    )
    data.update(overrides)
    return TournamentCreate(**data)


class TestCreateTournament:

    def test_create_with_active_window_opens_registration(self, db, owner):
        tournament = tournament_service.create_tournament(db, tournament_payload(), owner)

        assert tournament.id is not None
        assert tournament.status == TournamentStatus.REGISTRATION_OPEN.value
        assert tournament.owner_id == owner.id
        assert tournament.created_by_id == owner.id
        assert tournament.current_participants == 0
        assert tournament.bracket_generated is False

    def test_create_with_future_window_is_pending(self, db, owner):
        tournament = tournament_service.create_tournament(
            db, tournament_payload(registration_start_in=timedelta(days=5)), owner
        )
        assert tournament.status == TournamentStatus.PENDING.value

    def test_create_with_elapsed_window_is_closed(self, db, owner):
        tournament = tournament_service.create_tournament(
            db, tournament_payload(registration_start_in=timedelta(days=-10)), owner
        )
        assert tournament.status == TournamentStatus.REGISTRATION_CLOSED.value

    def test_schedule_errors_are_reported_per_field(self, db, owner):
        now = utcnow()
        payload = tournament_payload(
            registration_start=now,
            registration_end=now - timedelta(hours=1),
            start_date=now - timedelta(hours=2),
            end_date=now - timedelta(hours=3),
        )

        with pytest.raises(InvalidInputError) as exc_info:
            tournament_service.create_tournament(db, payload, owner)

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"registration_end", "start_date", "end_date"}
        assert db.query(Tournament).count() == 0

    def test_capacity_must_be_power_of_two(self):
        with pytest.raises(ValueError):
            tournament_payload(max_participants=6)


class TestInitialStatus:

    def test_boundaries(self):
        now = utcnow()
        start, end = now, now + timedelta(hours=1)
        assert tournament_service.initial_status(start, end, now=now) == TournamentStatus.REGISTRATION_OPEN.value
        assert tournament_service.initial_status(start, end, now=end) == TournamentStatus.REGISTRATION_CLOSED.value
        assert tournament_service.initial_status(start, end, now=now - timedelta(seconds=1)) == TournamentStatus.PENDING.value


class TestListTournaments:

    def test_filters_and_pagination(self, db, make_tournament):
        for _ in range(3):
            make_tournament(game="Valorant")
        make_tournament(game="Chess", status=TournamentStatus.PENDING.value)

        tournaments, pagination = tournament_service.get_tournaments(db, game="valorant", page=1, limit=2)
        assert len(tournaments) == 2
        assert pagination.total == 3
        assert pagination.total_pages == 2

        tournaments, pagination = tournament_service.get_tournaments(db, status=TournamentStatus.PENDING.value)
        assert [t.game for t in tournaments] == ["Chess"]
        assert pagination.total == 1


class TestUpdateTournament:

    def test_update_fields(self, db, make_tournament, owner):
        tournament = make_tournament()

        updated = tournament_service.update_tournament(
            db, tournament.id, TournamentUpdate(name="Renamed Cup", description=None), owner
        )
        assert updated.name == "Renamed Cup"
        assert updated.description is None

    def test_requires_manager(self, db, make_tournament, make_user):
        tournament = make_tournament()
        with pytest.raises(UnauthorizedError):
            tournament_service.update_tournament(db, tournament.id, TournamentUpdate(name="Nope"), make_user())

    def test_capacity_cannot_drop_below_registrations(self, db, make_tournament, register_players, owner):
        tournament = make_tournament(max_participants=8)
        register_players(tournament, 5)

        with pytest.raises(InvalidInputError):
            tournament_service.update_tournament(db, tournament.id, TournamentUpdate(max_participants=4), owner)

    def test_capacity_frozen_once_in_progress(self, db, bracket, owner):
        tournament, participants, matches = bracket(2)
        with pytest.raises(InvalidStateError):
            tournament_service.update_tournament(db, tournament.id, TournamentUpdate(max_participants=16), owner)

    def test_terminal_tournament_is_read_only(self, db, make_tournament, owner):
        tournament = make_tournament(status=TournamentStatus.CANCELLED.value)
        with pytest.raises(InvalidStateError):
            tournament_service.update_tournament(db, tournament.id, TournamentUpdate(name="Too late"), owner)

    def test_schedule_checked_against_stored_dates(self, db, make_tournament, owner):
        tournament = make_tournament()
        with pytest.raises(InvalidInputError):
            tournament_service.update_tournament(
                db, tournament.id, TournamentUpdate(end_date=tournament.start_date - timedelta(hours=1)), owner
            )


class TestLifecycleTransitions:

    def test_open_registration_from_pending(self, db, make_tournament, owner):
        tournament = make_tournament(status=TournamentStatus.PENDING.value)
        new_end = tournament.registration_end + timedelta(hours=6)

        opened = tournament_service.open_registration(
            db, tournament.id, OpenRegistrationRequest(registration_end=new_end), owner
        )
        assert opened.status == TournamentStatus.REGISTRATION_OPEN.value
        assert opened.registration_end == new_end

    def test_open_registration_only_from_pending(self, db, make_tournament, owner):
        tournament = make_tournament(status=TournamentStatus.REGISTRATION_OPEN.value)
        with pytest.raises(InvalidStateError):
            tournament_service.open_registration(db, tournament.id, OpenRegistrationRequest(), owner)

    def test_close_registration(self, db, make_tournament, owner):
        tournament = make_tournament()
        closed = tournament_service.close_registration(db, tournament.id, owner)
        assert closed.status == TournamentStatus.REGISTRATION_CLOSED.value

        with pytest.raises(InvalidStateError):
            tournament_service.close_registration(db, tournament.id, owner)

    def test_start_requires_bracket(self, db, make_tournament, register_players, owner):
        tournament = make_tournament()
        register_players(tournament, 2)
        with pytest.raises(InvalidStateError, match="Bracket"):
            tournament_service.start_tournament(db, tournament.id, owner)

    def test_start_is_idempotent_after_bracket(self, db, bracket, owner):
        tournament, participants, matches = bracket(4)
        started = tournament_service.start_tournament(db, tournament.id, owner)
        assert started.status == TournamentStatus.IN_PROGRESS.value

    def test_start_needs_two_live_participants(self, db, bracket, owner):
        tournament, participants, matches = bracket(2)
        db.query(Participant).filter(Participant.tournament_id == tournament.id)\
            .update({Participant.status: "banned"}, synchronize_session=False)
        db.commit()

        with pytest.raises(InvalidStateError, match="At least 2"):
            tournament_service.start_tournament(db, tournament.id, owner)

    def test_cancel_and_stay_cancelled(self, db, make_tournament, make_user, owner):
        tournament = make_tournament()
        cancelled = tournament_service.cancel_tournament(db, tournament.id, owner)
        assert cancelled.status == TournamentStatus.CANCELLED.value

        with pytest.raises(InvalidStateError):
            tournament_service.cancel_tournament(db, tournament.id, owner)
        with pytest.raises(InvalidStateError):
            participant_service.register_participant(db, tournament.id, make_user())

    def test_completed_tournament_cannot_be_cancelled(self, db, make_tournament, owner):
        tournament = make_tournament(status=TournamentStatus.COMPLETED.value)
        with pytest.raises(InvalidStateError):
            tournament_service.cancel_tournament(db, tournament.id, owner)


class TestDeleteTournament:

    def test_delete_removes_bracket_and_registrations(self, db, bracket, owner):
        tournament, participants, matches = bracket(4)
        tournament_id = tournament.id
        tournament.status = TournamentStatus.CANCELLED.value
        db.commit()

        tournament_service.delete_tournament(db, tournament_id, owner)

        db.expire_all()
        assert tournament_service.get_tournament(db, tournament_id) is None
        assert db.query(Match).filter(Match.tournament_id == tournament_id).count() == 0
        assert db.query(Participant).filter(Participant.tournament_id == tournament_id).count() == 0

    def test_cannot_delete_in_progress(self, db, bracket, owner):
        tournament, participants, matches = bracket(2)
        with pytest.raises(InvalidStateError):
            tournament_service.delete_tournament(db, tournament.id, owner)

    def test_delete_unknown(self, db, owner):
        with pytest.raises(NotFoundError):
            tournament_service.delete_tournament(db, 31337, owner)


class TestListMatches:

    def test_filter_by_round(self, db, bracket):
        tournament, participants, matches = bracket(4)

        assert len(tournament_service.list_matches(db, tournament.id)) == 2
        assert len(tournament_service.list_matches(db, tournament.id, round=1)) == 2
        assert tournament_service.list_matches(db, tournament.id, round=2) == []
