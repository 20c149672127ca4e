import pytest

from quickten.games.core.engine import (
    ENDED, RUNNING, WARNING, RoundEngine, RoundRules,
    SIGNAL_CORRECT, SIGNAL_ERROR, SIGNAL_INCORRECT,
    SIGNAL_ROUND_ABORTED, SIGNAL_ROUND_ENDED, SIGNAL_WARNING_ENTERED,
)


def fixed_hand(*digits):
    def gen(rng, **kw):
        return tuple(digits)
    return gen


@pytest.fixture()
def sunk():
    return []


@pytest.fixture()
def engine(sunk):
    return RoundEngine(RoundRules(), score_sink=sunk.append, generator=fixed_hand(2, 3, 4, 1))


def type_expr(engine, expr):
    for ch in expr:
        if ch.isdigit():
            assert engine.press_digit(int(ch))
        else:
            assert engine.press_operator(ch)


def kinds(engine):
    return [s.kind for s in engine.drain_signals()]


def test_fresh_round(engine):
    snap = engine.snapshot()
    assert snap["time_remaining"] == 60
    assert snap["score"] == 0
    assert snap["phase"] == RUNNING
    assert snap["challenge"] == [2, 3, 4, 1]
    assert snap["expression"] == ""
    assert snap["used_digits"] == []


def test_warning_after_fifty_ticks(engine):
    for _ in range(49):
        engine.tick()
    assert engine.phase == RUNNING
    engine.tick()
    assert engine.time_remaining == 10
    assert engine.phase == WARNING
    assert kinds(engine) == [SIGNAL_WARNING_ENTERED]
    engine.tick()
    assert kinds(engine) == []   # fires once


def test_round_ends_at_zero_and_hands_off_score(engine, sunk):
    for _ in range(60):
        engine.tick()
    assert engine.is_over
    assert engine.phase == ENDED
    assert engine.time_remaining == 0
    assert kinds(engine) == [SIGNAL_WARNING_ENTERED, SIGNAL_ROUND_ENDED]
    assert sunk == [0]


def test_correct_submit_rewards_time_and_score(engine):
    for _ in range(5):
        engine.tick()
    type_expr(engine, "2*4+3-1")
    verdict = engine.submit()
    assert verdict.correct
    assert engine.score == 1
    assert engine.time_remaining == 55 + 15
    assert engine.expression == ""
    assert engine.used_digits == []
    assert engine.attempts == 1
    sigs = engine.drain_signals()
    assert sigs[-1].kind == SIGNAL_CORRECT
    assert sigs[-1].data["score"] == 1


def test_incorrect_submit_keeps_challenge(engine):
    type_expr(engine, "2*3+4+1")
    verdict = engine.submit()
    assert not verdict.correct
    assert engine.score == 0
    assert engine.time_remaining == 60
    assert engine.challenge == (2, 3, 4, 1)
    assert engine.expression == ""
    sigs = engine.drain_signals()
    assert sigs[-1].kind == SIGNAL_INCORRECT
    assert sigs[-1].data["value"] == 11


def test_malformed_submit_signals_error(engine):
    type_expr(engine, "2+3")
    verdict = engine.submit()
    assert verdict.status == "wrong_digits"
    assert kinds(engine)[-1] == SIGNAL_ERROR
    assert engine.attempts == 1


def test_digit_cannot_be_used_more_than_held(engine):
    assert engine.press_digit(2)
    assert not engine.press_digit(2)
    assert not engine.press_digit(9)
    assert engine.used_digits == [2]
    assert engine.expression == "2"


def test_operator_glyphs_and_rejects(engine):
    assert engine.press_digit(2)
    assert engine.press_operator("×")
    assert engine.press_digit(4)
    assert engine.press_operator("÷")
    assert not engine.press_operator("^")
    assert engine.expression == "2*4/"


def test_clear_resets_buffers(engine):
    type_expr(engine, "2*4")
    assert engine.clear()
    assert engine.expression == ""
    assert engine.used_digits == []
    assert engine.press_digit(2)


def test_reward_is_not_capped_and_warning_stays(engine):
    for _ in range(55):
        engine.tick()
    assert engine.phase == WARNING
    type_expr(engine, "2*4+3-1")
    engine.submit()
    assert engine.time_remaining == 20
    assert engine.phase == WARNING
    assert not engine.is_over


def test_events_after_end_are_ignored(engine, sunk):
    for _ in range(60):
        engine.tick()
    engine.drain_signals()
    assert not engine.press_digit(2)
    assert not engine.press_operator("+")
    assert not engine.clear()
    assert engine.submit() is None
    assert not engine.abort()
    engine.tick()
    assert engine.drain_signals() == []
    assert sunk == [0]


def test_abort_skips_score_hand_off(engine, sunk):
    type_expr(engine, "2*4+3-1")
    engine.submit()
    engine.drain_signals()
    assert engine.abort()
    assert engine.is_over
    assert engine.aborted
    sigs = engine.drain_signals()
    assert [s.kind for s in sigs] == [SIGNAL_ROUND_ABORTED]
    assert sigs[0].data["score"] == 1
    assert sunk == []


def test_failing_sink_does_not_reopen_round():
    def boom(score):
        raise RuntimeError("offline")

    engine = RoundEngine(RoundRules(round_seconds=2), score_sink=boom, generator=fixed_hand(1, 2, 3, 4))
    engine.tick()
    engine.tick()
    assert engine.is_over
    assert kinds(engine)[-1] == SIGNAL_ROUND_ENDED


def test_start_resets_everything(engine):
    type_expr(engine, "2*4+3-1")
    engine.submit()
    engine.abort()
    old_id = engine.round_id
    engine.start()
    assert engine.round_id != old_id
    assert engine.score == 0
    assert engine.time_remaining == 60
    assert engine.phase == RUNNING
    assert not engine.aborted


def test_subscribers_and_watchers(engine):
    got, snaps = [], []
    engine.subscribe(got.append)
    engine.watch(snaps.append)
    type_expr(engine, "2*4+3-1")
    engine.submit()
    assert [s.kind for s in got] == [SIGNAL_CORRECT]
    assert snaps[-1]["score"] == 1


def test_rules_from_config():
    rules = RoundRules.from_config({"ROUND_SECONDS": "30", "TARGET": 24})
    assert rules.round_seconds == 30
    assert rules.target == 24
    assert rules.reward_seconds == 15


def test_sink_runs_inside_the_ending_tick_after_state_is_final():
    seen = []
    engine = RoundEngine(RoundRules(round_seconds=1), generator=fixed_hand(1, 2, 3, 4))
    engine.score_sink = lambda score: seen.append((score, engine.phase, engine.time_remaining))
    engine.tick()
    assert seen == [(0, ENDED, 0)]
