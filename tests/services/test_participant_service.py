import pytest

from tournex.core.exceptions import (
    CapacityExceededError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from tournex.models import Notification, Participant
from tournex.models.enums import MatchStatus, ParticipantStatus, TournamentStatus
from tournex.services import participant_service


class TestRegisterParticipant:

    def test_register_success(self, db, make_tournament, make_user):
        tournament = make_tournament()
        player = make_user()

        participant = participant_service.register_participant(db, tournament.id, player)

        db.refresh(tournament)
        assert participant.id is not None
        assert participant.user_id == player.id
        assert participant.status == ParticipantStatus.REGISTERED.value
        assert participant.wins == 0
        assert participant.losses == 0
        assert tournament.current_participants == 1

    def test_register_unknown_tournament(self, db, make_user):
        with pytest.raises(NotFoundError):
            participant_service.register_participant(db, 999, make_user())

    @pytest.mark.parametrize("status", [
        TournamentStatus.PENDING.value,
        TournamentStatus.REGISTRATION_CLOSED.value,
        TournamentStatus.IN_PROGRESS.value,
        TournamentStatus.CANCELLED.value,
    ])
    def test_register_requires_open_registration(self, db, make_tournament, make_user, status):
        tournament = make_tournament(status=status)
        with pytest.raises(InvalidStateError):
            participant_service.register_participant(db, tournament.id, make_user())

    def test_owner_cannot_register(self, db, make_tournament, owner):
        tournament = make_tournament()
        with pytest.raises(InvalidInputError, match="owner"):
            participant_service.register_participant(db, tournament.id, owner)

        db.refresh(tournament)
        assert tournament.current_participants == 0

    def test_duplicate_registration_rejected(self, db, make_tournament, make_user):
        tournament = make_tournament()
        player = make_user()
        participant_service.register_participant(db, tournament.id, player)

        with pytest.raises(InvalidInputError, match="Already registered"):
            participant_service.register_participant(db, tournament.id, player)

        db.refresh(tournament)
        assert tournament.current_participants == 1

    def test_banned_player_gets_distinct_message(self, db, make_tournament, make_user, owner):
        tournament = make_tournament()
        player = make_user()
        participant = participant_service.register_participant(db, tournament.id, player)
        participant_service.ban_participant(db, tournament.id, participant.id, owner)

        with pytest.raises(InvalidInputError, match="banned"):
            participant_service.register_participant(db, tournament.id, player)

    def test_capacity_is_never_exceeded(self, db, make_tournament, make_user):
        tournament = make_tournament(max_participants=2)
        participant_service.register_participant(db, tournament.id, make_user())
        participant_service.register_participant(db, tournament.id, make_user())

        with pytest.raises(CapacityExceededError):
            participant_service.register_participant(db, tournament.id, make_user())

        db.refresh(tournament)
        assert tournament.current_participants == 2
        assert db.query(Participant).filter(Participant.tournament_id == tournament.id).count() == 2


class TestBanParticipant:

    def test_ban_success(self, db, make_tournament, register_players, owner):
        tournament = make_tournament()
        participant = register_players(tournament, 2)[0]

        banned = participant_service.ban_participant(db, tournament.id, participant.id, owner)

        db.refresh(tournament)
        assert banned.status == ParticipantStatus.BANNED.value
        assert tournament.current_participants == 1

        notification = db.query(Notification).filter(Notification.user_id == participant.user_id).one()
        assert notification.type == "participant_banned"
        assert notification.related_entity_id == tournament.id

    def test_super_admin_can_ban(self, db, make_tournament, register_players, super_admin):
        tournament = make_tournament()
        participant = register_players(tournament, 1)[0]

        banned = participant_service.ban_participant(db, tournament.id, participant.id, super_admin)
        assert banned.status == ParticipantStatus.BANNED.value

    def test_ban_requires_manager(self, db, make_tournament, register_players, make_user):
        tournament = make_tournament()
        participant = register_players(tournament, 1)[0]

        with pytest.raises(UnauthorizedError):
            participant_service.ban_participant(db, tournament.id, participant.id, make_user())

    def test_ban_twice_rejected(self, db, make_tournament, register_players, owner):
        tournament = make_tournament()
        participant = register_players(tournament, 1)[0]
        participant_service.ban_participant(db, tournament.id, participant.id, owner)

        with pytest.raises(InvalidInputError, match="already banned"):
            participant_service.ban_participant(db, tournament.id, participant.id, owner)

        db.refresh(tournament)
        assert tournament.current_participants == 0

    @pytest.mark.parametrize("status", [
        TournamentStatus.PENDING.value,
        TournamentStatus.REGISTRATION_CLOSED.value,
        TournamentStatus.COMPLETED.value,
        TournamentStatus.CANCELLED.value,
    ])
    def test_ban_outside_allowed_window(self, db, make_tournament, register_players, owner, status):
        tournament = make_tournament()
        participant = register_players(tournament, 1)[0]
        tournament.status = status
        db.commit()

        with pytest.raises(InvalidStateError):
            participant_service.ban_participant(db, tournament.id, participant.id, owner)

    def test_ban_blocked_by_active_match(self, db, bracket, owner):
        tournament, participants, matches = bracket(4)
        assert matches[0].status == MatchStatus.PENDING.value

        with pytest.raises(InvalidStateError, match="pending or in-progress match"):
            participant_service.ban_participant(db, tournament.id, participants[0].id, owner)

    def test_ban_allowed_after_bye(self, db, bracket, owner):
        tournament, participants, matches = bracket(3)
        bye_holder = participants[2]
        assert matches[-1].is_bye

        banned = participant_service.ban_participant(db, tournament.id, bye_holder.id, owner)
        assert banned.status == ParticipantStatus.BANNED.value

    def test_ban_participant_of_other_tournament(self, db, make_tournament, register_players, owner):
        first = make_tournament()
        second = make_tournament()
        participant = register_players(first, 1)[0]

        with pytest.raises(NotFoundError):
            participant_service.ban_participant(db, second.id, participant.id, owner)


class TestListParticipants:

    def test_list_in_registration_order(self, db, make_tournament, register_players):
        tournament = make_tournament()
        registered = register_players(tournament, 3)

        listed = participant_service.list_participants(db, tournament.id)
        assert [p.id for p in listed] == [p.id for p in registered]

    def test_list_unknown_tournament(self, db):
        with pytest.raises(NotFoundError):
            participant_service.list_participants(db, 12345)
