"""Read-only progress queries: finished check, stats, current match, standings, summary."""
from sqlmodel import Session

from tests.helpers import match_at, play
from tourney.services import match_lifecycle
from tourney.services.progress_tracker import (
    is_tournament_finished,
    list_matches,
    match_stats,
    player_current_match,
    round_robin_standings,
    tournament_progress,
)


def test_list_matches_filters(session: Session, make_tournament):
    tid = make_tournament("double_elimination", players=16)

    assert len(list_matches(session, tid)) == 27
    assert [m.position for m in list_matches(session, tid, round_no=1)] == list(range(1, 13))
    lower = list_matches(session, tid, bracket_type="losers")
    assert len(lower) == 8
    assert all(m.bracket_type == "losers" for m in lower)


def test_match_stats(session: Session, make_tournament):
    tid = make_tournament(players=4)
    m1, m2 = match_at(session, tid, 1), match_at(session, tid, 2)
    play(session, m1.id)
    match_lifecycle.start_match(session, m2.id)

    assert match_stats(session, tid) == {
        "total": 3,
        "completed": 1,
        "in_progress": 1,
        "scheduled": 1,
        "cancelled": 0,
    }


def test_pending_confirmation_counts_as_in_progress(session: Session, make_tournament):
    tid = make_tournament(players=2)
    final = match_at(session, tid, 1)
    match_lifecycle.start_match(session, final.id)
    match_lifecycle.report_result(session, final.id, "p1", 3, 0)

    assert match_stats(session, tid)["in_progress"] == 1


def test_is_tournament_finished_single_elimination(session: Session, make_tournament):
    tid = make_tournament(players=2)
    assert is_tournament_finished(session, tid) is False

    play(session, match_at(session, tid, 1).id)
    assert is_tournament_finished(session, tid) is True


def test_is_tournament_finished_double_elimination(session: Session, make_tournament):
    tid = make_tournament("double_elimination", players=16)

    def play_higher_seed(position):
        match = match_at(session, tid, position)
        seed1, seed2 = int(match.player1_id[1:]), int(match.player2_id[1:])
        play(session, match.id, winner=1 if seed1 < seed2 else 2)

    for position in range(1, 27):
        play_higher_seed(position)
    assert match_stats(session, tid)["completed"] == 26
    assert is_tournament_finished(session, tid) is False

    play_higher_seed(27)
    assert match_at(session, tid, 27).bracket_type == "grand_final"
    assert is_tournament_finished(session, tid) is True


def test_is_tournament_finished_round_robin(session: Session, make_tournament):
    tid = make_tournament("round_robin", players=3)
    matches = list_matches(session, tid)
    ids = [m.id for m in matches]

    for match_id in ids[:-1]:
        play(session, match_id)
    assert is_tournament_finished(session, tid) is False

    play(session, ids[-1])
    assert is_tournament_finished(session, tid) is True


def test_player_current_match(session: Session, make_tournament):
    tid = make_tournament(players=4)
    m1, final = match_at(session, tid, 1), match_at(session, tid, 3)

    assert player_current_match(session, tid, "p1").id == m1.id
    play(session, m1.id)
    assert player_current_match(session, tid, "p1").id == final.id
    assert player_current_match(session, tid, "p4") is None
    assert player_current_match(session, tid, "nobody") is None


def test_round_robin_standings(session: Session, make_tournament):
    tid = make_tournament("round_robin", players=4)

    # p1 wins everything 3:0, otherwise the player1 side wins 3:2
    for match in list_matches(session, tid):
        if "p1" in (match.player1_id, match.player2_id):
            winner = 1 if match.player1_id == "p1" else 2
            play(session, match.id, winner=winner, loser_score=0)
        else:
            play(session, match.id, winner=1, loser_score=2)

    table = round_robin_standings(session, tid)

    assert [row.user_id for row in table][0] == "p1"
    leader = table[0]
    assert (leader.played, leader.wins, leader.losses) == (3, 3, 0)
    assert (leader.games_won, leader.games_lost, leader.game_difference) == (9, 0, 9)
    assert sum(row.wins for row in table) == 6
    assert sum(row.losses for row in table) == 6
    assert all(row.played == 3 for row in table)
    wins = [row.wins for row in table]
    assert wins == sorted(wins, reverse=True)


def test_standings_before_any_result_order_by_seed(session: Session, make_tournament):
    tid = make_tournament("round_robin", players=3)

    table = round_robin_standings(session, tid)

    assert [row.user_id for row in table] == ["p1", "p2", "p3"]
    assert all(row.played == 0 for row in table)


def test_tournament_progress(session: Session, make_tournament):
    tid = make_tournament(players=4)
    play(session, match_at(session, tid, 1).id)

    progress = tournament_progress(session, tid)

    assert progress["tournament_id"] == tid
    assert progress["format"] == "single_elimination"
    assert progress["status"] == "in_progress"
    assert progress["finished"] is False
    assert progress["champion_id"] is None
    assert progress["total_rounds"] == 2
    assert progress["expected_matches"] == 3
    assert progress["matches"]["completed"] == 1
    assert progress["rounds"] == [
        {"round": 1, "bracket_type": "winners", "name": "Semifinal"},
        {"round": 2, "bracket_type": "winners", "name": "Final"},
    ]
