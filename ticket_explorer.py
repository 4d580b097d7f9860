"""In-memory ticket explorer: tab membership, search, sentiment and sorting.

Everything here works on a snapshot of ticket dicts shaped like the
``/api/tickets`` payload and never performs I/O, so the same inputs always
produce the same view.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Optional, Protocol

PRIORITY_RANK = {"urgent": 4, "high": 3, "medium": 2, "low": 1}
DEFAULT_PRIORITY_RANK = 1

PRIORITY_SORT_MODES = ("high", "low")
SENTIMENT_SORT_MODES = ("negative", "positive")
DATE_SORT_MODES = ("newest", "oldest")
VIEW_MODES = ("grid", "list")

ASSIGNEE_ROSTER = (
    ("Sofia Chen", "AI Product Specialist"),
    ("Marcus Rodriguez", "Technical Support Lead"),
    ("Elena Kowalski", "ESG Data Analyst"),
    ("James Kim", "API Engineering"),
    ("Dr. Sarah Patel", "Data Solutions Architect"),
    ("Alex Thompson", "Frontend Developer"),
    ("David Zhang", "Infrastructure Engineer"),
    ("Dr. Lisa Wang", "AI Research Lead"),
)


@dataclass(frozen=True)
class Tab:
    key: str
    label: str
    keywords: tuple[str, ...] = ()
    icon: str = "bi bi-inbox"

    def matches(self, ticket: Mapping[str, object]) -> bool:
        if not self.keywords:
            return True
        haystacks = [
            _lower(ticket.get("ticket_subject")),
            _lower(ticket.get("product_area")),
            _lower(ticket.get("ticket_body")),
        ]
        return any(keyword in text for text in haystacks for keyword in self.keywords)


TABS = (
    Tab("assigned", "Raw tickets", icon="bi bi-person"),
    Tab("mentioned", "Mentioned AI", ("ai", "kensho"), icon="bi bi-robot"),
    Tab(
        "private_markets",
        "Private markets",
        ("private market", "private_market", "private equity", "funding round", "venture"),
        icon="bi bi-bank",
    ),
    Tab("esg", "ESG", ("esg", "sustainab", "climate", "carbon", "emission"), icon="bi bi-tree"),
)
TABS_BY_KEY = {tab.key: tab for tab in TABS}
DEFAULT_TAB = TABS[0].key
TAG_SEPARATOR = ","


def _lower(value: object) -> str:
    if value is None:
        return ""
    return str(value).lower()


def _parse_tags(raw: object) -> tuple[str, ...]:
    if not raw:
        return ()
    parts = (part.strip() for part in str(raw).split(TAG_SEPARATOR))
    return tuple(sorted({part for part in parts if part}))


def parse_timestamp(value: object) -> datetime:
    """Coerce an API timestamp into an aware UTC datetime.

    Unparseable or missing values sort as the earliest possible instant.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value) if value is not None else ""
        if not text:
            return datetime.min.replace(tzinfo=timezone.utc)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# --------------------------------------------------------------------------------------
# Sentiment
# --------------------------------------------------------------------------------------
class SentimentScorer(Protocol):
    def score(self, ticket: Mapping[str, object]) -> float:
        ...


NEGATIVE_KEYWORDS = (
    "bug",
    "error",
    "broken",
    "slow",
    "terrible",
    "crash",
    "fail",
    "issue",
    "problem",
    "frustrat",
    "timeout",
    "times out",
    "not working",
)

POSITIVE_KEYWORDS = (
    "great",
    "thank",
    "excellent",
    "love",
    "helpful",
    "appreciate",
    "awesome",
    "perfect",
    "impressed",
    "resolved",
)


@dataclass(frozen=True)
class KeywordSentimentScorer:
    """Fixed-weight heuristic over priority, status and keyword hits."""

    baseline: float = 0.5
    keyword_weight: float = 0.1
    priority_weights: Mapping[str, float] = field(
        default_factory=lambda: {"urgent": -0.3, "high": -0.2, "low": 0.1}
    )
    status_weights: Mapping[str, float] = field(
        default_factory=lambda: {"escalated": -0.2, "closed": 0.1}
    )
    negative_keywords: tuple[str, ...] = NEGATIVE_KEYWORDS
    positive_keywords: tuple[str, ...] = POSITIVE_KEYWORDS

    def score(self, ticket: Mapping[str, object]) -> float:
        value = self.baseline
        value += self.priority_weights.get(_lower(ticket.get("ticket_priority")), 0.0)
        value += self.status_weights.get(_lower(ticket.get("ticket_status")), 0.0)

        text = f"{_lower(ticket.get('ticket_subject'))} {_lower(ticket.get('ticket_body'))}"
        for keyword in self.negative_keywords:
            value -= self.keyword_weight * text.count(keyword)
        for keyword in self.positive_keywords:
            value += self.keyword_weight * text.count(keyword)

        return round(min(1.0, max(0.0, value)), 4)


DEFAULT_SCORER = KeywordSentimentScorer()


def sentiment_score(ticket: Mapping[str, object], scorer: Optional[SentimentScorer] = None) -> float:
    return (scorer or DEFAULT_SCORER).score(ticket)


def sentiment_label(score: float) -> tuple[str, str]:
    """Return the (label, tone) pair used for badges."""
    if score <= 0.3:
        return "Negative", "red"
    if score <= 0.7:
        return "Neutral", "yellow"
    return "Positive", "green"


# --------------------------------------------------------------------------------------
# Presentation helpers
# --------------------------------------------------------------------------------------
def assignee_for(index: int) -> dict[str, str]:
    name, role = ASSIGNEE_ROSTER[index % len(ASSIGNEE_ROSTER)]
    initials = "".join(part[0] for part in name.split() if part)
    return {"name": name, "role": role, "initials": initials}


def time_ago(timestamp: object, now: Optional[datetime] = None) -> str:
    moment = parse_timestamp(timestamp)
    if moment == datetime.min.replace(tzinfo=timezone.utc):
        return "—"
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    minutes = max(0, int((current - moment).total_seconds() // 60))
    hours = minutes // 60
    if hours < 1:
        return f"{minutes} min"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''}"
    days = hours // 24
    return f"{days} day{'s' if days > 1 else ''}"


# --------------------------------------------------------------------------------------
# Explorer state
# --------------------------------------------------------------------------------------
@dataclass(frozen=True)
class ExplorerState:
    search: str = ""
    tab: str = DEFAULT_TAB
    priority_sort: Optional[str] = None
    sentiment_sort: Optional[str] = None
    date_sort: str = "newest"
    view: str = "grid"
    tags: tuple[str, ...] = ()

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> "ExplorerState":
        tab = (args.get("tab") or "").strip()
        priority = (args.get("priority_sort") or "").strip()
        sentiment = (args.get("sentiment_sort") or "").strip()
        date_sort = (args.get("date_sort") or "").strip()
        view = (args.get("view") or "").strip()

        priority_sort = priority if priority in PRIORITY_SORT_MODES else None
        sentiment_sort = sentiment if sentiment in SENTIMENT_SORT_MODES else None
        if priority_sort and sentiment_sort:
            sentiment_sort = None

        return cls(
            search=(args.get("q") or "").strip(),
            tab=tab if tab in TABS_BY_KEY else DEFAULT_TAB,
            priority_sort=priority_sort,
            sentiment_sort=sentiment_sort,
            date_sort=date_sort if date_sort in DATE_SORT_MODES else "newest",
            view=view if view in VIEW_MODES else "grid",
            tags=_parse_tags(args.get("tags")),
        )

    def to_args(self) -> dict[str, str]:
        args = {"tab": self.tab, "date_sort": self.date_sort, "view": self.view}
        if self.search:
            args["q"] = self.search
        if self.priority_sort:
            args["priority_sort"] = self.priority_sort
        if self.sentiment_sort:
            args["sentiment_sort"] = self.sentiment_sort
        if self.tags:
            args["tags"] = TAG_SEPARATOR.join(self.tags)
        return args

    def toggle_priority_sort(self, mode: str) -> "ExplorerState":
        if mode not in PRIORITY_SORT_MODES:
            raise ValueError(f"Unknown priority sort mode: {mode!r}")
        if self.priority_sort == mode:
            return replace(self, priority_sort=None)
        return replace(self, priority_sort=mode, sentiment_sort=None)

    def toggle_sentiment_sort(self, mode: str) -> "ExplorerState":
        if mode not in SENTIMENT_SORT_MODES:
            raise ValueError(f"Unknown sentiment sort mode: {mode!r}")
        if self.sentiment_sort == mode:
            return replace(self, sentiment_sort=None)
        return replace(self, sentiment_sort=mode, priority_sort=None)

    def with_tab(self, tab: str) -> "ExplorerState":
        return replace(self, tab=tab if tab in TABS_BY_KEY else DEFAULT_TAB)

    def with_date_sort(self, date_sort: str) -> "ExplorerState":
        return replace(self, date_sort=date_sort if date_sort in DATE_SORT_MODES else "newest")

    def with_view(self, view: str) -> "ExplorerState":
        return replace(self, view=view if view in VIEW_MODES else "grid")

    def toggle_tag(self, tag: str) -> "ExplorerState":
        if tag in self.tags:
            return replace(self, tags=tuple(t for t in self.tags if t != tag))
        return replace(self, tags=tuple(sorted((*self.tags, tag))))


# --------------------------------------------------------------------------------------
# Derivation
# --------------------------------------------------------------------------------------
def matches_search(ticket: Mapping[str, object], term: str) -> bool:
    needle = (term or "").strip().lower()
    if not needle:
        return True
    fields = ("ticket_subject", "ticket_body", "ticket_id", "product_area", "user_persona")
    return any(needle in _lower(ticket.get(name)) for name in fields)


def tab_counts(tickets: Iterable[Mapping[str, object]]) -> dict[str, int]:
    snapshot = list(tickets)
    return {tab.key: sum(1 for ticket in snapshot if tab.matches(ticket)) for tab in TABS}


def ticket_tags(ticket: Mapping[str, object]) -> list[str]:
    """Tags come from the enrichment topics; unenriched tickets have none."""
    topics = ticket.get("detected_topics")
    if not isinstance(topics, (list, tuple)):
        return []
    return [str(topic) for topic in topics if topic]


def matches_tags(ticket: Mapping[str, object], tags: Iterable[str]) -> bool:
    own = set(ticket_tags(ticket))
    return all(tag in own for tag in tags)


def tag_counts(tickets: Iterable[Mapping[str, object]]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for ticket in tickets:
        for tag in set(ticket_tags(ticket)):
            counts[tag] = counts.get(tag, 0) + 1
    return dict(sorted(counts.items()))


def priority_rank(ticket: Mapping[str, object]) -> int:
    return PRIORITY_RANK.get(_lower(ticket.get("ticket_priority")), DEFAULT_PRIORITY_RANK)


def sort_tickets(
    tickets: Iterable[Mapping[str, object]],
    state: ExplorerState,
    score_of: Callable[[Mapping[str, object]], float],
) -> list[Mapping[str, object]]:
    # Date order is applied first and survives as the tiebreaker of the stable
    # priority / sentiment passes.
    ordered = sorted(
        tickets,
        key=lambda t: parse_timestamp(t.get("timestamp_utc")),
        reverse=state.date_sort == "newest",
    )
    if state.priority_sort:
        ordered.sort(key=priority_rank, reverse=state.priority_sort == "high")
    elif state.sentiment_sort:
        ordered.sort(key=score_of, reverse=state.sentiment_sort == "positive")
    return ordered


def summarize_sentiment(scores: Iterable[float]) -> dict[str, object]:
    counts = {"Positive": 0, "Neutral": 0, "Negative": 0}
    for score in scores:
        label, _ = sentiment_label(score)
        counts[label] += 1
    total = sum(counts.values())

    def pct(count: int) -> int:
        return round(count * 100 / total) if total else 0

    return {
        "total": total,
        "counts": counts,
        "percentages": {label: pct(count) for label, count in counts.items()},
    }


@dataclass
class DerivedView:
    state: ExplorerState
    cards: list[dict[str, object]]
    tab_counts: dict[str, int]
    tag_counts: dict[str, int]
    sentiment_summary: dict[str, object]
    total: int

    @property
    def tickets(self) -> list[Mapping[str, object]]:
        return [card["ticket"] for card in self.cards]


def derive_view(
    tickets: Iterable[Mapping[str, object]],
    state: Optional[ExplorerState] = None,
    scorer: Optional[SentimentScorer] = None,
    now: Optional[datetime] = None,
) -> DerivedView:
    """Produce the ordered, filtered and decorated subset to render."""
    state = state or ExplorerState()
    scorer = scorer or DEFAULT_SCORER
    snapshot = list(tickets)

    scores: dict[int, float] = {}

    def score_of(ticket: Mapping[str, object]) -> float:
        key = id(ticket)
        if key not in scores:
            scores[key] = scorer.score(ticket)
        return scores[key]

    tab = TABS_BY_KEY.get(state.tab, TABS[0])
    visible = [
        t for t in snapshot
        if tab.matches(t) and matches_search(t, state.search) and matches_tags(t, state.tags)
    ]
    ordered = sort_tickets(visible, state, score_of)

    cards = []
    for index, ticket in enumerate(ordered):
        score = score_of(ticket)
        label, tone = sentiment_label(score)
        cards.append(
            {
                "ticket": ticket,
                "position": index + 1,
                "sentiment": score,
                "sentiment_label": label,
                "sentiment_tone": tone,
                "assignee": assignee_for(index),
                "time_ago": time_ago(ticket.get("timestamp_utc"), now=now),
            }
        )

    return DerivedView(
        state=state,
        cards=cards,
        tab_counts=tab_counts(snapshot),
        tag_counts=tag_counts(snapshot),
        sentiment_summary=summarize_sentiment(card["sentiment"] for card in cards),
        total=len(snapshot),
    )


class TicketExplorer:
    """Holds one ticket snapshot and derives views from it.

    ``loader`` is called once per ``reload()``; the snapshot is replaced
    wholesale and never mutated in between.
    """

    def __init__(self, loader: Callable[[], Iterable[Mapping[str, object]]], scorer: Optional[SentimentScorer] = None):
        self._loader = loader
        self._scorer = scorer
        self._snapshot: Optional[list[Mapping[str, object]]] = None

    @property
    def snapshot(self) -> list[Mapping[str, object]]:
        if self._snapshot is None:
            self.reload()
        return list(self._snapshot or [])

    def reload(self) -> None:
        self._snapshot = list(self._loader())

    def view(self, state: Optional[ExplorerState] = None, now: Optional[datetime] = None) -> DerivedView:
        return derive_view(self.snapshot, state, scorer=self._scorer, now=now)
