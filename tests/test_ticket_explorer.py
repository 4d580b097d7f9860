from datetime import datetime, timedelta, timezone

import pytest

import ticket_explorer as explorer
from ticket_explorer import ExplorerState, TicketExplorer, derive_view

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_ticket(ticket_id, hours_ago=0, **overrides):
    ticket = {
        "ticket_id": ticket_id,
        "timestamp_utc": (NOW - timedelta(hours=hours_ago)).isoformat(),
        "user_id": "U-1",
        "user_persona": "Portfolio_Manager",
        "client_firm_tier": 1,
        "product_area": "API",
        "ticket_status": "open",
        "ticket_priority": "medium",
        "ticket_subject": "Question",
        "ticket_body": "Account question",
    }
    ticket.update(overrides)
    return ticket


def ids(view):
    return [ticket["ticket_id"] for ticket in view.tickets]


def test_tab_counts_ignore_active_tab_and_search():
    tickets = [
        make_ticket("A", ticket_subject="Kensho summary missing"),
        make_ticket("B", product_area="ESG_Data"),
        make_ticket("C", ticket_body="Private market funding round data"),
        make_ticket("D"),
    ]

    base = derive_view(tickets, ExplorerState(), now=NOW)
    narrowed = derive_view(tickets, ExplorerState(tab="esg", search="zzz"), now=NOW)

    expected = {"assigned": 4, "mentioned": 1, "private_markets": 1, "esg": 1}
    assert base.tab_counts == expected
    assert narrowed.tab_counts == expected
    assert narrowed.cards == []
    assert narrowed.total == 4


def test_mentioned_tab_is_case_insensitive():
    tickets = [
        make_ticket("A", product_area="AI_Features", ticket_subject="Export"),
        make_ticket("B", ticket_subject="KENSHO outage"),
        make_ticket("C", ticket_subject="Billing", ticket_body="Invoice total"),
    ]

    view = derive_view(tickets, ExplorerState(tab="mentioned"), now=NOW)

    assert sorted(ids(view)) == ["A", "B"]


def test_search_is_case_insensitive_across_fields():
    tickets = [
        make_ticket("ST-1", ticket_subject="Latency report"),
        make_ticket("ST-2", user_persona="Latency_Desk"),
        make_ticket("ST-3"),
    ]

    view = derive_view(tickets, ExplorerState(search="LATENCY"), now=NOW)
    by_id = derive_view(tickets, ExplorerState(search="st-3"), now=NOW)
    blank = derive_view(tickets, ExplorerState(search="   "), now=NOW)

    assert sorted(ids(view)) == ["ST-1", "ST-2"]
    assert ids(by_id) == ["ST-3"]
    assert len(blank.cards) == 3


def test_priority_sort_high_then_low():
    tickets = [
        make_ticket("low", hours_ago=1, ticket_priority="low"),
        make_ticket("urgent", hours_ago=2, ticket_priority="urgent"),
        make_ticket("medium", hours_ago=3, ticket_priority="medium"),
    ]

    high = derive_view(tickets, ExplorerState(priority_sort="high"), now=NOW)
    low = derive_view(tickets, ExplorerState(priority_sort="low"), now=NOW)

    assert ids(high) == ["urgent", "medium", "low"]
    assert ids(low) == ["low", "medium", "urgent"]


def test_unknown_priority_ranks_with_low_and_keeps_date_order():
    tickets = [
        make_ticket("weird", hours_ago=1, ticket_priority="critical"),
        make_ticket("low", hours_ago=2, ticket_priority="low"),
        make_ticket("high", hours_ago=3, ticket_priority="high"),
    ]

    view = derive_view(tickets, ExplorerState(priority_sort="high"), now=NOW)

    assert ids(view) == ["high", "weird", "low"]
    assert explorer.priority_rank({"ticket_priority": None}) == 1


def test_date_sort_orders_before_other_sorts():
    tickets = [
        make_ticket("older", hours_ago=5),
        make_ticket("newer", hours_ago=1),
    ]

    assert ids(derive_view(tickets, ExplorerState(), now=NOW)) == ["newer", "older"]
    assert ids(derive_view(tickets, ExplorerState(date_sort="oldest"), now=NOW)) == ["older", "newer"]


def test_sentiment_sort_end_to_end():
    a = make_ticket("A", ticket_priority="urgent", ticket_status="escalated",
                    ticket_subject="bug", ticket_body="crash")
    b = make_ticket("B", ticket_priority="low", ticket_status="closed",
                    ticket_subject="thanks", ticket_body="great")

    negative_first = derive_view([b, a], ExplorerState(sentiment_sort="negative"), now=NOW)
    positive_first = derive_view([a, b], ExplorerState(sentiment_sort="positive"), now=NOW)

    assert ids(negative_first) == ["A", "B"]
    assert ids(positive_first) == ["B", "A"]
    assert negative_first.cards[0]["sentiment"] == 0.0
    assert negative_first.cards[0]["sentiment_label"] == "Negative"
    assert negative_first.cards[1]["sentiment_label"] == "Positive"


def test_sort_toggles_are_mutually_exclusive():
    state = ExplorerState().toggle_priority_sort("high")
    assert state.priority_sort == "high"

    state = state.toggle_sentiment_sort("negative")
    assert state.sentiment_sort == "negative"
    assert state.priority_sort is None

    state = state.toggle_priority_sort("low")
    assert state.priority_sort == "low"
    assert state.sentiment_sort is None

    assert state.toggle_priority_sort("low").priority_sort is None
    with pytest.raises(ValueError):
        state.toggle_sentiment_sort("sideways")


def test_state_round_trips_through_args():
    state = ExplorerState(search="api", tab="esg", sentiment_sort="positive",
                          date_sort="oldest", view="list")

    assert ExplorerState.from_args(state.to_args()) == state


def test_state_from_args_falls_back_to_defaults():
    state = ExplorerState.from_args({
        "tab": "nope",
        "priority_sort": "high",
        "sentiment_sort": "negative",
        "date_sort": "sideways",
        "view": "table",
    })

    assert state.tab == "assigned"
    assert state.priority_sort == "high"
    assert state.sentiment_sort is None
    assert state.date_sort == "newest"
    assert state.view == "grid"


def test_sentiment_score_is_clamped():
    gloomy = make_ticket("A", ticket_priority="urgent", ticket_status="escalated",
                         ticket_body="bug bug error crash broken slow fail")
    sunny = make_ticket("B", ticket_priority="low", ticket_status="closed",
                        ticket_body="great thanks excellent, love it, awesome and perfect")

    assert explorer.sentiment_score(gloomy) == 0.0
    assert explorer.sentiment_score(sunny) == 1.0


def test_sentiment_score_baseline_and_weights():
    assert explorer.sentiment_score(make_ticket("A")) == 0.5
    assert explorer.sentiment_score(make_ticket("B", ticket_priority="high")) == 0.3
    assert explorer.sentiment_score(make_ticket("C", ticket_body="Slow page, slow export")) == 0.3


def test_sentiment_labels():
    assert explorer.sentiment_label(0.3) == ("Negative", "red")
    assert explorer.sentiment_label(0.5) == ("Neutral", "yellow")
    assert explorer.sentiment_label(0.7) == ("Neutral", "yellow")
    assert explorer.sentiment_label(0.71) == ("Positive", "green")


def test_custom_scorer_is_used():
    class ByIdScorer:
        def score(self, ticket):
            return {"A": 0.9, "B": 0.1}[ticket["ticket_id"]]

    tickets = [make_ticket("A"), make_ticket("B")]
    view = derive_view(tickets, ExplorerState(sentiment_sort="negative"),
                       scorer=ByIdScorer(), now=NOW)

    assert ids(view) == ["B", "A"]


def test_sentiment_summary_counts_visible_cards():
    tickets = [
        make_ticket("A", ticket_priority="urgent", ticket_status="escalated"),
        make_ticket("B"),
        make_ticket("C", ticket_status="closed", ticket_body="thanks, great"),
        make_ticket("D", ticket_body="thanks"),
    ]

    summary = derive_view(tickets, ExplorerState(), now=NOW).sentiment_summary

    assert summary["total"] == 4
    assert summary["counts"] == {"Positive": 1, "Neutral": 2, "Negative": 1}
    assert summary["percentages"] == {"Positive": 25, "Neutral": 50, "Negative": 25}
    assert explorer.summarize_sentiment([])["percentages"]["Neutral"] == 0


def test_cards_carry_position_assignee_and_age():
    tickets = [make_ticket(f"T{i}", hours_ago=i) for i in range(10)]

    view = derive_view(tickets, ExplorerState(), now=NOW)

    assert [card["position"] for card in view.cards] == list(range(1, 11))
    assert view.cards[0]["assignee"]["name"] == "Sofia Chen"
    assert view.cards[8]["assignee"]["name"] == "Sofia Chen"
    assert view.cards[4]["assignee"]["initials"] == "DSP"
    assert view.cards[2]["time_ago"] == "2 hours"


def test_time_ago_formats():
    assert explorer.time_ago((NOW - timedelta(minutes=5)).isoformat(), now=NOW) == "5 min"
    assert explorer.time_ago((NOW - timedelta(hours=1)).isoformat(), now=NOW) == "1 hour"
    assert explorer.time_ago((NOW - timedelta(days=3)).isoformat(), now=NOW) == "3 days"
    assert explorer.time_ago("2024-06-15T11:00:00Z", now=NOW) == "1 hour"
    assert explorer.time_ago("not a date", now=NOW) == "—"


def test_explorer_loads_snapshot_once():
    calls = []

    def loader():
        calls.append(1)
        return [make_ticket("A"), make_ticket("B", ticket_subject="Kensho")]

    exp = TicketExplorer(loader)
    exp.view(ExplorerState(), now=NOW)
    exp.view(ExplorerState(tab="mentioned"), now=NOW)
    exp.view(ExplorerState(search="b", priority_sort="high"), now=NOW)

    assert len(calls) == 1

    exp.reload()
    assert len(calls) == 2


def test_urgent_terrible_bug_sorts_before_grateful_ticket():
    a = make_ticket("A", ticket_priority="urgent", ticket_status="open", ticket_body="terrible bug")
    b = make_ticket("B", ticket_priority="low", ticket_status="closed", ticket_body="great, thanks")

    assert explorer.sentiment_score(a) < explorer.sentiment_score(b)
    view = derive_view([b, a], ExplorerState(sentiment_sort="negative"), now=NOW)
    assert ids(view) == ["A", "B"]


def test_ai_product_area_counts_in_mentioned_tab_and_matches_search():
    ticket = make_ticket("A", product_area="AI_Features", ticket_subject="Export")

    view = derive_view([ticket], ExplorerState(search="ai"), now=NOW)

    assert view.tab_counts["mentioned"] == 1
    assert ids(view) == ["A"]


def test_ten_negative_keywords_with_urgent_priority_clamps_to_zero():
    body = " ".join(["bug"] * 10)
    ticket = make_ticket("A", ticket_priority="urgent", ticket_body=body)

    assert explorer.sentiment_score(ticket) == 0.0


def test_tag_filter_requires_every_selected_tag():
    tickets = [
        make_ticket("A", detected_topics=["latency", "export"]),
        make_ticket("B", detected_topics=["latency"]),
        make_ticket("C", detected_topics=None),
    ]

    one = derive_view(tickets, ExplorerState(tags=("latency",)), now=NOW)
    both = derive_view(tickets, ExplorerState(tags=("export", "latency")), now=NOW)

    assert sorted(ids(one)) == ["A", "B"]
    assert ids(both) == ["A"]
    assert both.tag_counts == {"export": 1, "latency": 2}
    assert len(derive_view(tickets, ExplorerState(), now=NOW).cards) == 3


def test_tag_toggle_round_trips_through_args():
    state = ExplorerState().toggle_tag("latency").toggle_tag("export")

    assert state.tags == ("export", "latency")
    assert state.to_args()["tags"] == "export,latency"
    assert ExplorerState.from_args(state.to_args()) == state
    assert state.toggle_tag("export").tags == ("latency",)
    assert ExplorerState.from_args({"tags": " ,latency, "}).tags == ("latency",)
