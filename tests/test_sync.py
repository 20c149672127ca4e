import pytest

from quickten.auth.identity import AnonymousIdentityProvider
from quickten.scores.store import MemoryScoreStore, NotAuthenticatedError, StoreError
from quickten.scores.sync import ScoreSynchronizer


class DownStore(MemoryScoreStore):
    def commit_if_best(self, player_id, candidate, now=None):
        raise StoreError("connection refused")

    def top(self, limit):
        raise StoreError("connection refused")


@pytest.fixture()
def sync():
    return ScoreSynchronizer(MemoryScoreStore(), AnonymousIdentityProvider("p1"))


def test_commit_if_best_sequence(sync):
    assert sync.commit_if_best(5).value is True
    assert sync.commit_if_best(3).value is False
    assert sync.commit_if_best(8).value is True
    assert sync.fetch_best().value == 8


def test_fetch_best_without_record(sync):
    out = sync.fetch_best()
    assert out.ok
    assert out.value is None


def test_negative_score_is_rejected(sync):
    with pytest.raises(ValueError):
        sync.commit_if_best(-1)


def test_missing_identity_is_an_error_value():
    sync = ScoreSynchronizer(MemoryScoreStore(), AnonymousIdentityProvider())
    out = sync.commit_if_best(4)
    assert not out.ok
    assert isinstance(out.error, NotAuthenticatedError)
    assert out.to_payload()["error"] == "not_authenticated"
    assert not sync.fetch_best().ok


def test_explicit_player_overrides_identity(sync):
    sync.commit_if_best(2, player_id="p2")
    assert sync.fetch_best("p2").value == 2
    assert sync.fetch_best().value is None


def test_store_failure_is_an_error_value():
    sync = ScoreSynchronizer(DownStore(), AnonymousIdentityProvider("p1"))
    out = sync.commit_if_best(4)
    assert not out.ok
    assert out.to_payload()["error"] == "store_unavailable"
    assert not sync.fetch_top_ranking(5).ok
    assert not sync.save_round(4).ok


def test_fetch_top_ranking(sync):
    sync.commit_if_best(3, player_id="a")
    sync.commit_if_best(9, player_id="b")
    sync.commit_if_best(5, player_id="c")
    out = sync.fetch_top_ranking(2)
    assert out.ok
    assert [e.player_id for e in out.value] == ["b", "c"]


def test_save_round(sync):
    first = sync.save_round(4)
    assert first.value == {"saved": True, "is_best": True, "best_score": 4, "score": 4}
    second = sync.save_round(2)
    assert second.value == {"saved": True, "is_best": False, "best_score": 4, "score": 2}
