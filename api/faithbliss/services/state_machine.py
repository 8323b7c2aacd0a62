from enum import Enum

LIKE = "like"
PASS = "pass"


class PairState(str, Enum):
    NO_INTERACTION = "no_interaction"
    LIKED = "liked"
    MATCHED = "matched"


def pair_state(a_likes_b: bool, b_likes_a: bool) -> PairState:
    if a_likes_b and b_likes_a:
        return PairState.MATCHED
    if a_likes_b or b_likes_a:
        return PairState.LIKED
    return PairState.NO_INTERACTION


def transition_pair(current: PairState, action: str) -> PairState:
    """Return the pair state after one side acts.

    ``current`` is read before the actor's like is written, so ``LIKED`` here means
    only the other side has liked. A repeated like is rejected by the store first.
    """
    if current == PairState.MATCHED:
        return PairState.MATCHED

    if action == LIKE:
        if current == PairState.LIKED:
            return PairState.MATCHED
        return PairState.LIKED

    return current
