from __future__ import annotations

from bprogram.event_sink import InMemoryEventSink
from bprogram.program import BProgram
from bprogram.reporting import derive_round_rows, group_rows_into_super_steps, render_text_report
from bprogram.statement import sync

COMMENTS = [
    {"id": 1, "comment": "I love Behavioral Programming"},
    {"id": 2, "comment": "I think b-threads compose well"},
]


def main() -> None:
    # View state owned by the b-threads; the engine never touches it.
    view: dict[str, object] = {}

    sink = InMemoryEventSink()
    bp = BProgram(event_sink=sink)

    def show_comments(last_event):
        event = yield sync(wait="FETCH_COMMENTS_SUCCESS")
        view["comments"] = [c["comment"] for c in event.payload["comments"]]

    def fetch_comments(last_event):
        yield sync(request="FETCH_COMMENTS")
        # The comments arrive from outside through bp.request("COMMENTS_LOADED").
        loaded = yield sync(wait="COMMENTS_LOADED")
        yield sync(request="FETCH_COMMENTS_SUCCESS", payload=loaded.payload)
        yield sync(request="FETCH_ANOTHER_COMMENTS_SUCCESS", payload=loaded.payload)

    def hold_another_success(last_event):
        yield sync(wait="FETCH_ANOTHER_COMMENTS_COUNT", block="FETCH_ANOTHER_COMMENTS_SUCCESS")

    def fetch_comments_count(last_event):
        yield sync(request="FETCH_COMMENTS_COUNT")
        view["comments_count"] = "fetched directly"

    def block_comments_count(last_event):
        yield sync(block="FETCH_COMMENTS_COUNT")

    def count_from_another_fetch(last_event):
        yield sync(request="FETCH_ANOTHER_COMMENTS_COUNT")
        event = yield sync(wait="FETCH_ANOTHER_COMMENTS_SUCCESS")
        view["comments_count"] = len(event.payload["comments"])

    for priority, factory in enumerate(
        [
            show_comments,
            fetch_comments,
            hold_another_success,
            fetch_comments_count,
            block_comments_count,
            count_from_another_fetch,
        ],
        start=1,
    ):
        bp.add_bthread(factory.__name__, priority, factory)

    bp.run()
    bp.request("COMMENTS_LOADED", payload={"comments": COMMENTS})

    frames = group_rows_into_super_steps(derive_round_rows(sink.records))
    print(render_text_report(frames), end="")

    print("View state:")
    for key, value in view.items():
        print(f"  {key:<15s} {value}")
    print(f"Still waiting: {[b.name for b in bp.pending_bids]}")


if __name__ == "__main__":
    main()
