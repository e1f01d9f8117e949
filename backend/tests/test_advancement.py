"""Advancement: completed matches fill downstream slots; sinks complete the tournament."""
import pytest
from sqlmodel import Session, select

from tests.helpers import match_at, play
from tourney.models.match import Match, MatchStatus
from tourney.models.tournament import Tournament
from tourney.services import match_lifecycle
from tourney.services.advancement_service import advance, resolve_all_advancements
from tourney.services.errors import InvalidState
from tourney.services.events import MatchReady, TournamentCompleted


def test_advance_requires_completed_match(session: Session, make_tournament):
    tid = make_tournament()
    m1 = match_at(session, tid, 1)

    with pytest.raises(InvalidState):
        advance(session, m1)


def test_bye_winner_already_placed_at_start(session: Session, make_tournament):
    tid = make_tournament(players=3)
    bye = match_at(session, tid, 1)
    final = match_at(session, tid, 3)

    assert bye.is_bye and bye.status == MatchStatus.completed
    assert bye.winner_id == "p1"
    assert bye.completed_at is not None
    assert final.player1_id == "p1"

    result = play(session, match_at(session, tid, 2).id, winner=1)
    assert result.events == [
        MatchReady(tournament_id=tid, match_id=final.id, player1_id="p1", player2_id="p2")
    ]


def test_two_player_final_completes_tournament(session: Session, make_tournament):
    tid = make_tournament(players=2)
    final = match_at(session, tid, 1)

    result = play(session, final.id, winner=1)

    assert result.events == [TournamentCompleted(tournament_id=tid, champion_id="p1")]
    assert session.get(Tournament, tid).champion_id == "p1"


def test_slot_conflict_is_rejected(session: Session, make_tournament):
    tid = make_tournament()
    final = match_at(session, tid, 3)
    final.player1_id = "intruder"
    session.add(final)
    session.commit()

    m1 = match_at(session, tid, 1)
    match_lifecycle.start_match(session, m1.id)
    match_lifecycle.report_result(session, m1.id, "p1", 3, 0)

    with pytest.raises(InvalidState):
        match_lifecycle.confirm_result(session, m1.id, "p4")

    # whole confirmation rolled back
    assert match_at(session, tid, 1).status == MatchStatus.pending_confirmation
    assert match_at(session, tid, 3).player1_id == "intruder"


class TestDoubleElimination:
    def test_winner_and_loser_both_routed(self, session: Session, make_tournament):
        tid = make_tournament("double_elimination", players=16)
        m1 = match_at(session, tid, 1)
        assert (m1.player1_id, m1.player2_id) == ("p1", "p16")

        play(session, m1.id, winner=1)

        assert match_at(session, tid, 13).player1_id == "p1"
        assert match_at(session, tid, 9).player1_id == "p16"

    def test_lower_bracket_ready_after_two_upper_matches(self, session: Session, make_tournament):
        tid = make_tournament("double_elimination", players=16)
        m1, m2 = match_at(session, tid, 1), match_at(session, tid, 2)
        lower = match_at(session, tid, 9)
        upper = match_at(session, tid, 13)

        play(session, m1.id, winner=1)
        result = play(session, m2.id, winner=2)

        # m2 is p8 vs p9; p9 wins
        assert result.events == [
            MatchReady(tournament_id=tid, match_id=upper.id, player1_id="p1", player2_id="p9"),
            MatchReady(tournament_id=tid, match_id=lower.id, player1_id="p16", player2_id="p8"),
        ]

    def test_lower_bracket_loser_is_eliminated(self, session: Session, make_tournament):
        tid = make_tournament("double_elimination", players=16)
        play(session, match_at(session, tid, 1).id)
        play(session, match_at(session, tid, 2).id)

        lower = match_at(session, tid, 9)
        result = play(session, lower.id, winner=1)

        assert match_at(session, tid, 17).player1_id == lower.player1_id
        assert len(result.events) == 0
        placed = session.exec(
            select(Match).where(
                Match.tournament_id == tid,
                (Match.player1_id == lower.player2_id) | (Match.player2_id == lower.player2_id),
                Match.status != MatchStatus.completed,
            )
        ).all()
        assert placed == []

    def test_full_bracket_higher_seed_wins(self, session: Session, make_tournament):
        tid = make_tournament("double_elimination", players=16)

        for position in range(1, 28):
            match = match_at(session, tid, position)
            assert match.player1_id is not None and match.player2_id is not None, position
            seed1, seed2 = int(match.player1_id[1:]), int(match.player2_id[1:])
            result = play(session, match.id, winner=1 if seed1 < seed2 else 2)

        assert result.events == [TournamentCompleted(tournament_id=tid, champion_id="p1")]
        tournament = session.get(Tournament, tid)
        session.refresh(tournament)
        assert tournament.status == "completed"
        assert tournament.champion_id == "p1"


class TestRoundRobin:
    def test_completes_after_last_match(self, session: Session, make_tournament):
        tid = make_tournament("round_robin", players=3)
        matches = session.exec(
            select(Match).where(Match.tournament_id == tid).order_by(Match.position)
        ).all()
        assert len(matches) == 3
        ids = [m.id for m in matches]

        def p1_wins(match_id):
            match = session.get(Match, match_id)
            return play(session, match_id, winner=2 if match.player2_id == "p1" else 1)

        for match_id in ids[:-1]:
            assert p1_wins(match_id).events == []
        result = p1_wins(ids[-1])

        assert result.events == [TournamentCompleted(tournament_id=tid, champion_id="p1")]


def test_resolve_all_advancements_is_idempotent(session: Session, make_tournament):
    tid = make_tournament()
    play(session, match_at(session, tid, 1).id)

    first = resolve_all_advancements(session, tid)
    second = resolve_all_advancements(session, tid)

    assert first["matches_processed"] == 1
    assert first["unknown_before"] == first["unknown_after"] == 1
    assert second == first
    assert match_at(session, tid, 3).player1_id == "p1"


def test_resolve_all_advancements_repairs_missing_slot(session: Session, make_tournament):
    tid = make_tournament()
    play(session, match_at(session, tid, 1).id)
    final = match_at(session, tid, 3)
    final.player1_id = None
    session.add(final)
    session.commit()

    result = resolve_all_advancements(session, tid)

    assert result["matches_processed"] == 1
    assert match_at(session, tid, 3).player1_id == "p1"
