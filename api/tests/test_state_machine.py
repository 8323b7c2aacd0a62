from faithbliss.services.state_machine import LIKE, PASS, PairState, pair_state, transition_pair


def test_pair_state_from_like_edges():
    assert pair_state(False, False) == PairState.NO_INTERACTION
    assert pair_state(True, False) == PairState.LIKED
    assert pair_state(False, True) == PairState.LIKED
    assert pair_state(True, True) == PairState.MATCHED


def test_first_like_leaves_pair_liked():
    assert transition_pair(PairState.NO_INTERACTION, LIKE) == PairState.LIKED


def test_like_on_liked_pair_matches():
    before = pair_state(False, True)
    assert transition_pair(before, LIKE) == PairState.MATCHED


def test_pass_changes_nothing():
    assert transition_pair(PairState.NO_INTERACTION, PASS) == PairState.NO_INTERACTION
    assert transition_pair(PairState.LIKED, PASS) == PairState.LIKED


def test_matched_terminal():
    assert transition_pair(PairState.MATCHED, LIKE) == PairState.MATCHED
    assert transition_pair(PairState.MATCHED, PASS) == PairState.MATCHED
