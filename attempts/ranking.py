"""
Leaderboard ranking for completed attempts of one test.

Ordering is score descending, then earliest submission first. Ranks are
dense: equal scores share a rank and the next lower score gets the next
integer (scores 9, 9, 7 rank 1, 1, 2). The submission time only orders
tied attempts inside the list; it never splits their rank.
"""
from collections import namedtuple
from decimal import Decimal

RankEntry = namedtuple('RankEntry', ['attempt_id', 'score', 'submitted_at'])


def leaderboard_order(entries):
    return sorted(entries, key=lambda e: (-Decimal(e.score), e.submitted_at, e.attempt_id))


def dense_ranks(entries):
    """
    Return {attempt_id: rank} for every entry.

    Full recomputation on each call; the attempt count per test is small
    enough that no incremental structure is needed.
    """
    ranks = {}
    current_rank = 0
    previous_score = None
    for entry in leaderboard_order(entries):
        score = Decimal(entry.score)
        if previous_score is None or score != previous_score:
            current_rank += 1
            previous_score = score
        ranks[entry.attempt_id] = current_rank
    return ranks
