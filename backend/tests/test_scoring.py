import random
from types import SimpleNamespace

from conftest import HOST
from gameshow.models import Answer, Player
from gameshow.services.sessions import lifecycle, roster, scoring, store
from gameshow.services.sessions.pins import PinAllocator
from gameshow.services.sessions.results import Reason
from gameshow.services.sessions.scoring import map_choice, points_for, rank_players
from gameshow.services.sessions.settings import SessionSettings


def _playing(quiz_id, players=('Ann', 'Ben'), rng=None, allocator=None, **settings):
    gs = store.create_session(quiz_id, HOST, SessionSettings(**settings), allocator=allocator)
    ids = {}
    for name in players:
        ids[name] = roster.join(gs.id, name).value.id
    assert lifecycle.start_game(gs.id, HOST, rng=rng).ok
    return store.get_session(gs.id), ids


def _at(gs, seconds):
    return gs.question_started_at + seconds


def test_points_non_increasing_in_elapsed_time():
    previous = None
    for tenth in range(0, 601):
        points = points_for(1000, tenth / 10.0, 60)
        if previous is not None:
            assert points <= previous
        previous = points
    assert points_for(1000, 0, 60) == 1000
    assert points_for(1000, 60, 60) == 500


def test_points_floor_and_zero_base():
    assert points_for(1, 60, 60) == 1
    assert points_for(10, 60, 60) >= 1
    assert points_for(0, 1, 60) == 0


def test_map_choice():
    assert map_choice(1, None, 4) == frozenset({1})
    assert map_choice([0, 2], None, 4) == frozenset({0, 2})
    assert map_choice(0, [2, 0, 1, 3], 4) == frozenset({2})
    assert map_choice(4, None, 4) is None
    assert map_choice(-1, None, 4) is None
    assert map_choice([], None, 4) is None
    assert map_choice(True, None, 4) is None
    assert map_choice('1', None, 4) is None


def test_faster_correct_answer_scores_more(quiz_id):
    allocator = PinAllocator(rng=_Fixed(482913))
    gs, ids = _playing(quiz_id, allocator=allocator)
    assert gs.pin == '482913'

    fast = scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, 12))
    slow = scoring.submit_answer(gs.id, ids['Ben'], 0, 1, submitted_at=_at(gs, 54))
    assert fast.ok and slow.ok
    assert fast.value.is_correct and slow.value.is_correct
    assert fast.value.points > slow.value.points > 0


def test_wrong_answer_scores_zero(quiz_id):
    gs, ids = _playing(quiz_id)
    result = scoring.submit_answer(gs.id, ids['Ann'], 0, 0, submitted_at=_at(gs, 1))
    assert result.ok
    assert result.value.is_correct is False
    assert result.value.points == 0
    assert db_score(ids['Ann']) == 0


def test_multi_answer_question_needs_exact_set(quiz_id):
    gs, ids = _playing(quiz_id)
    lifecycle.advance(gs.id, HOST)
    lifecycle.advance(gs.id, HOST)
    gs = store.get_session(gs.id)
    partial = scoring.submit_answer(gs.id, ids['Ann'], 1, [0], submitted_at=_at(gs, 1))
    exact = scoring.submit_answer(gs.id, ids['Ben'], 1, [2, 0], submitted_at=_at(gs, 1))
    assert partial.value.points == 0
    assert exact.value.is_correct
    assert exact.value.points > 1000  # double points question


def test_second_submission_does_not_change_score(quiz_id):
    gs, ids = _playing(quiz_id)
    first = scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, 2))
    score = db_score(ids['Ann'])
    again = scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, 1))
    changed = scoring.submit_answer(gs.id, ids['Ann'], 0, 0, submitted_at=_at(gs, 3))
    assert first.ok
    assert again.reason == Reason.ALREADY_SUBMITTED
    assert changed.reason == Reason.ALREADY_SUBMITTED
    assert db_score(ids['Ann']) == score
    assert Answer.query.filter_by(player_id=ids['Ann']).count() == 1
    assert store.get_session(gs.id).answers_received == 1


def test_answer_for_future_question_is_wrong_phase(quiz_id):
    gs, ids = _playing(quiz_id)
    lifecycle.advance(gs.id, HOST)
    lifecycle.advance(gs.id, HOST)
    gs = store.get_session(gs.id)
    assert gs.current_question_index == 1
    result = scoring.submit_answer(gs.id, ids['Ann'], 2, 0, submitted_at=_at(gs, 1))
    assert result.reason == Reason.WRONG_PHASE
    assert result.message == 'That question is not open right now.'


def test_answer_for_past_question_is_wrong_phase(quiz_id):
    gs, ids = _playing(quiz_id)
    lifecycle.advance(gs.id, HOST)
    lifecycle.advance(gs.id, HOST)
    gs = store.get_session(gs.id)
    assert scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, 1)).reason == Reason.WRONG_PHASE


def test_answer_after_limit_is_too_late(quiz_id):
    gs, ids = _playing(quiz_id)
    result = scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, 60.5))
    assert result.reason == Reason.TOO_LATE
    on_the_bell = scoring.submit_answer(gs.id, ids['Ben'], 0, 1, submitted_at=_at(gs, 60))
    assert on_the_bell.ok
    assert on_the_bell.value.points == 500


def test_answer_while_closed_is_too_late(quiz_id):
    gs, ids = _playing(quiz_id)
    lifecycle.advance(gs.id, HOST)
    result = scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, 1))
    assert result.reason == Reason.TOO_LATE


def test_answer_before_question_start_is_wrong_phase(quiz_id):
    gs, ids = _playing(quiz_id)
    result = scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, -1))
    assert result.reason == Reason.WRONG_PHASE


def test_answer_in_lobby_is_wrong_phase(quiz_id):
    gs = store.create_session(quiz_id, HOST, SessionSettings())
    ann = roster.join(gs.id, 'Ann').value
    assert scoring.submit_answer(gs.id, ann.id, 0, 1).reason == Reason.WRONG_PHASE


def test_unknown_player_or_session(quiz_id):
    gs, ids = _playing(quiz_id)
    assert scoring.submit_answer(gs.id, 'nobody', 0, 1).reason == Reason.PLAYER_NOT_FOUND
    assert scoring.submit_answer('missing', ids['Ann'], 0, 1).reason == Reason.SESSION_NOT_FOUND


def test_invalid_choice(quiz_id):
    gs, ids = _playing(quiz_id)
    result = scoring.submit_answer(gs.id, ids['Ann'], 0, 9, submitted_at=_at(gs, 1))
    assert result.reason == Reason.INVALID_CHOICE
    assert scoring.submit_answer(gs.id, ids['Ann'], 0, 1, submitted_at=_at(gs, 2)).ok


def test_shuffled_options_map_back_to_quiz_answers(quiz_id):
    gs, ids = _playing(quiz_id, rng=random.Random(3), randomize_answers=True)
    order = gs.option_order(0)
    displayed_correct = order.index(1)
    result = scoring.submit_answer(gs.id, ids['Ann'], 0, displayed_correct, submitted_at=_at(gs, 1))
    assert result.value.is_correct
    snap = lifecycle.question_snapshot(gs)
    assert snap['answers'][displayed_correct] == '4'


def test_score_never_decreases_across_questions(quiz_id):
    gs, ids = _playing(quiz_id, players=('Ann',))
    scores = [db_score(ids['Ann'])]
    choices = {0: 1, 1: [1], 2: 0}
    for index in range(3):
        gs = store.get_session(gs.id)
        scoring.submit_answer(gs.id, ids['Ann'], index, choices[index], submitted_at=_at(gs, 5))
        scores.append(db_score(ids['Ann']))
        lifecycle.advance(gs.id, HOST)
        lifecycle.advance(gs.id, HOST)
    assert scores == sorted(scores)
    assert scores[-1] > 0


def test_ranking_tie_breaks():
    players = [
        SimpleNamespace(score=500, score_reached_at=20.0, join_seq=1, name='late'),
        SimpleNamespace(score=500, score_reached_at=10.0, join_seq=2, name='early'),
        SimpleNamespace(score=900, score_reached_at=30.0, join_seq=3, name='top'),
        SimpleNamespace(score=0, score_reached_at=None, join_seq=5, name='zero-b'),
        SimpleNamespace(score=0, score_reached_at=None, join_seq=4, name='zero-a'),
    ]
    assert [p.name for p in rank_players(players)] == ['top', 'early', 'late', 'zero-a', 'zero-b']


def test_leaderboard(quiz_id):
    gs, ids = _playing(quiz_id)
    scoring.submit_answer(gs.id, ids['Ben'], 0, 1, submitted_at=_at(gs, 3))
    rows = scoring.leaderboard(gs.id).value
    assert [r['display_name'] for r in rows] == ['Ben', 'Ann']
    assert [r['rank'] for r in rows] == [1, 2]
    assert scoring.leaderboard('missing').reason == Reason.SESSION_NOT_FOUND


class _Fixed(random.Random):
    def __init__(self, value):
        super().__init__(0)
        self._value = value

    def randrange(self, *args, **kwargs):
        return self._value


def db_score(player_id):
    from gameshow import db
    return db.session.get(Player, player_id, populate_existing=True).score


def test_only_the_joining_client_may_answer(quiz_id):
    gs = store.create_session(quiz_id, HOST, SessionSettings())
    ann = roster.join(gs.id, 'Ann', client_ref='guest_ann').value
    roster.join(gs.id, 'Ben', client_ref='guest_ben')
    lifecycle.start_game(gs.id, HOST)
    gs = store.get_session(gs.id)

    forged = scoring.submit_answer(gs.id, ann.id, 0, 0, submitted_at=_at(gs, 1), client_ref='guest_ben')
    assert forged.reason == Reason.NOT_YOUR_PLAYER
    assert Answer.query.filter_by(player_id=ann.id).count() == 0

    own = scoring.submit_answer(gs.id, ann.id, 0, 1, submitted_at=_at(gs, 2), client_ref='guest_ann')
    assert own.ok and own.value.is_correct


def test_no_points_question_scores_zero_even_when_correct(flask_app):
    from conftest import add_quiz

    quiz_id = add_quiz({
        'id': 'quiz-warmup',
        'title': 'Warm-up',
        'questions': [
            {'question': 'Ready?', 'answers': ['Yes', 'No'],
             'correctAnswers': [True, False], 'timeLimit': 30, 'points': 'noPoints'},
        ],
    })
    gs, ids = _playing(quiz_id, players=('Ann',))
    result = scoring.submit_answer(gs.id, ids['Ann'], 0, 0, submitted_at=_at(gs, 1))
    assert result.value.is_correct is True
    assert result.value.points == 0
    assert db_score(ids['Ann']) == 0
