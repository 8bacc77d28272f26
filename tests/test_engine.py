from __future__ import annotations

from bprogram.engine import evaluate_selection, partition_woken, select_next_event
from bprogram.events import ANY, Event
from tests._support.bthread_helpers import waiting_bid


def test_nothing_waiting_selects_nothing():
    assert select_next_event([]) is None


def test_waits_and_blocks_without_requests_select_nothing():
    waiting = [waiting_bid("w", 1, wait="A"), waiting_bid("b", 2, block="A")]
    assert select_next_event(waiting) is None


def test_lower_priority_value_wins_regardless_of_order():
    low_first = [waiting_bid("low", 1, request="LOW"), waiting_bid("high", 7, request="HIGH")]
    high_first = list(reversed(low_first))

    assert select_next_event(low_first).kind == "LOW"
    assert select_next_event(high_first).kind == "LOW"


def test_tie_goes_to_earlier_bid_in_waiting_order():
    waiting = [waiting_bid("first", 3, request="ONE"), waiting_bid("second", 3, request="TWO")]
    assert select_next_event(waiting).kind == "ONE"

    waiting.reverse()
    assert select_next_event(waiting).kind == "TWO"


def test_tie_within_one_bid_goes_to_earlier_request():
    waiting = [waiting_bid("multi", 1, request=["B", "A", "C"])]
    assert select_next_event(waiting).kind == "B"


def test_selected_event_is_a_stamped_copy():
    requested = Event("X", payload={"n": 1})
    bid = waiting_bid("r", 4, request=requested)

    selected = select_next_event([bid])

    assert selected == requested
    assert selected.payload == {"n": 1}
    assert selected.selection_priority == 4
    assert bid.statement.request[0].selection_priority is None


def test_block_from_another_bid_overrides_best_priority():
    waiting = [
        waiting_bid("wants_a", 1, request="A"),
        waiting_bid("wants_b", 9, request="B"),
        waiting_bid("guard", 20, block="A"),
    ]
    assert select_next_event(waiting).kind == "B"


def test_requester_can_block_its_own_request():
    waiting = [waiting_bid("self", 1, request="A", block="A")]
    assert select_next_event(waiting) is None


def test_blocked_sole_candidate_selects_nothing():
    waiting = [waiting_bid("top", 0, request="ONLY"), waiting_bid("guard", 99, block=ANY)]
    assert select_next_event(waiting) is None


def test_predicate_block_filters_on_payload():
    waiting = [
        waiting_bid("big", 1, request=Event("SET", payload=100)),
        waiting_bid("small", 2, request=Event("SET", payload=5)),
        waiting_bid("cap", 3, block=lambda e: e.kind == "SET" and e.payload > 10),
    ]
    selected = select_next_event(waiting)

    assert selected.payload == 5
    assert selected.selection_priority == 2


def test_evaluate_selection_keeps_candidates_and_blocked():
    waiting = [
        waiting_bid("a", 1, request=["A", "B"]),
        waiting_bid("guard", 2, request="C", block="A"),
    ]
    selection = evaluate_selection(waiting)

    assert [c.event.kind for c in selection.candidates] == ["A", "B", "C"]
    assert [c.order for c in selection.candidates] == [0, 1, 2]
    assert [c.event.kind for c in selection.blocked] == ["A"]
    assert [c.requester for c in selection.eligible] == ["a", "guard"]
    assert selection.selected.kind == "B"


def test_partition_woken_matches_requests_and_waits_in_order():
    requester = waiting_bid("requester", 1, request="GO")
    waiter = waiting_bid("waiter", 2, wait=lambda e: e.kind.startswith("G"))
    other = waiting_bid("other", 3, wait="STOP")
    blocker = waiting_bid("blocker", 4, block="GO")

    woken, still = partition_woken([other, requester, blocker, waiter], Event("GO"))

    assert [b.name for b in woken] == ["requester", "waiter"]
    assert [b.name for b in still] == ["other", "blocker"]


def test_selection_does_not_mutate_bids():
    bid = waiting_bid("r", 1, request="A", wait="B", block="C")
    before = bid.statement

    select_next_event([bid])

    assert bid.statement is before
    assert bid.priority == 1
