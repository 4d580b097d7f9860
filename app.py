from __future__ import annotations
import os
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Optional

from flask import (
    Flask,
    flash,
    jsonify,
    redirect,
    render_template_string,
    request,
    url_for,
)
from jinja2 import DictLoader
from markupsafe import Markup, escape
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    func,
    or_,
    text,
)
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    Query,
    Session,
    declarative_base,
    relationship,
    scoped_session,
    sessionmaker,
)

from ticket_client import TicketApiClient, TicketApiError
from ticket_explorer import (
    TABS,
    ExplorerState,
    TicketExplorer,
    parse_timestamp,
    sentiment_label,
    sentiment_score,
)

# --------------------------------------------------------------------------------------
# Flask app config
# --------------------------------------------------------------------------------------
app = Flask(__name__)
app.config["SECRET_KEY"] = os.environ.get("FLASK_SECRET", "dev-secret")
app.json.sort_keys = False


def _candidate_path_from_env(value: str) -> Path | None:
    """Return a filesystem path for supported SQLite URI formats."""

    cleaned = value.strip()
    if not cleaned or cleaned == ":memory:":
        return None

    if cleaned.startswith("sqlite:///"):
        cleaned = cleaned[len("sqlite:///"):]
    elif cleaned.startswith("sqlite://"):
        cleaned = cleaned[len("sqlite://"):]

    if cleaned == ":memory:":
        return None

    if cleaned.startswith("file:") or "://" in cleaned:
        return None

    if "?" in cleaned:
        cleaned = cleaned.split("?", 1)[0]

    return Path(cleaned)


def _resolve_db_path(
    env_override: str | None = None,
    data_dir_override: str | None = None,
) -> str:
    """Determine the SQLite database location and ensure the directory exists."""

    env_value = env_override if env_override is not None else os.environ.get("TICKETS_DB")
    data_dir = data_dir_override if data_dir_override is not None else os.environ.get("TICKETS_DATA_DIR")

    if env_value:
        path_candidate = _candidate_path_from_env(env_value)
        if path_candidate is None:
            return env_value
        candidate = path_candidate.expanduser()
    else:
        base_dir = Path(data_dir) if data_dir else Path(app.instance_path)
        base_dir.mkdir(parents=True, exist_ok=True)
        candidate = (base_dir / "tickets.db").expanduser()

    if not candidate.is_absolute():
        base_dir = Path(data_dir) if data_dir else Path(app.instance_path)
        candidate = (base_dir / candidate).resolve()

    candidate.parent.mkdir(parents=True, exist_ok=True)
    return str(candidate)


def _postgres_url_from_parts() -> URL | None:
    """Build a PostgreSQL URL from DB_HOST/DB_PORT/... when DB_HOST is set."""

    host = os.getenv("DB_HOST")
    if not host:
        return None
    return URL.create(
        "postgresql+psycopg2",
        username=os.getenv("DB_USER", "postgres"),
        password=os.getenv("DB_PASSWORD") or os.getenv("PGPASSWORD") or "postgres",
        host=host,
        port=int(os.getenv("DB_PORT", "5432")),
        database=os.getenv("DB_NAME", "capital_iq_dev"),
    )


def build_engine(
    database_url: str | URL | None = None,
    db_path: str | None = None,
    sslmode: str | None = None,
) -> Engine:
    if database_url:
        return create_engine(
            database_url,
            pool_pre_ping=True,
            connect_args={"sslmode": sslmode or "require"},
        )
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )


DATABASE_URL = os.getenv("DATABASE_URL")
PG_PARTS_URL = None if DATABASE_URL else _postgres_url_from_parts()
DB_PATH = None if (DATABASE_URL or PG_PARTS_URL) else _resolve_db_path()

if DATABASE_URL:
    engine = build_engine(DATABASE_URL, sslmode=os.getenv("DB_SSLMODE"))
elif PG_PARTS_URL is not None:
    engine = build_engine(PG_PARTS_URL, sslmode=os.getenv("DB_SSLMODE", "prefer"))
else:
    engine = build_engine(db_path=DB_PATH)

app.logger.info(
    "DB engine: %s",
    "Postgres" if (DATABASE_URL or PG_PARTS_URL) else f"SQLite @ {DB_PATH}",
)

SessionLocal = scoped_session(
    sessionmaker(bind=engine, autoflush=False, autocommit=False)
)
Base = declarative_base()

# When set, the dashboard loads its snapshot through the JSON API instead of in-process.
EXPLORER_API_URL = os.getenv("EXPLORER_API_URL")


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    ticket_id = Column(String, primary_key=True)
    timestamp_utc = Column(DateTime(timezone=True), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    user_persona = Column(String)
    client_firm_tier = Column(Integer, nullable=False)
    product_area = Column(String, index=True)
    ticket_status = Column(String, nullable=False, index=True)
    ticket_priority = Column(String, nullable=False, index=True)
    ticket_subject = Column(String)
    ticket_body = Column(Text, nullable=False)

    enrichment = relationship(
        "EnrichedFeedback",
        back_populates="ticket",
        uselist=False,
        lazy="select",
    )


class EnrichedFeedback(Base):
    __tablename__ = "enriched_feedback"

    enrichment_id = Column(Integer, primary_key=True)
    ticket_id = Column(
        String,
        ForeignKey("support_tickets.ticket_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    processed_at_utc = Column(DateTime(timezone=True))
    feedback_category = Column(String)
    detected_topics = Column(JSON)
    sentiment_score = Column(Float)
    priority_score = Column(Float)
    mentioned_entities = Column(JSON)
    is_churn_risk = Column(Boolean, nullable=False, default=False)
    llm_summary = Column(Text)

    ticket = relationship("SupportTicket", back_populates="enrichment", lazy="select")


# --------------------------------------------------------------------------------------
# DB helpers
# --------------------------------------------------------------------------------------


def get_session() -> Session:
    return SessionLocal()


def close_session(exc: BaseException | None = None):  # noqa: ARG001
    SessionLocal.remove()


@app.teardown_appcontext
def _teardown_sqlalchemy(exc: BaseException | None):  # noqa: ARG001
    close_session(exc)


def use_engine(new_engine: Engine) -> None:
    """Point the module at a different engine (tests, scripts)."""
    global engine
    engine = new_engine
    SessionLocal.remove()
    SessionLocal.configure(bind=new_engine)


def init_db():
    Base.metadata.create_all(engine)


def ping_database() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


# --------------------------------------------------------------------------------------
# Constants / helpers
# --------------------------------------------------------------------------------------
STATUSES = ["open", "escalated", "closed"]
PRIORITIES = ["urgent", "high", "medium", "low"]
STATUS_BADGES = {
    "open": {"cls": "badge-chip badge-open", "icon": "bi bi-exclamation-circle"},
    "escalated": {"cls": "badge-chip badge-escalated", "icon": "bi bi-clock-history"},
    "closed": {"cls": "badge-chip badge-closed", "icon": "bi bi-check-circle"},
}
UNKNOWN_STATUS_BADGE = {"cls": "badge-chip badge-unknown", "icon": "bi bi-x-circle"}
PRIORITY_BADGES = {
    "urgent": {"cls": "badge-chip priority-urgent", "icon": "bi bi-exclamation-octagon"},
    "high": {"cls": "badge-chip priority-high", "icon": "bi bi-arrow-up"},
    "medium": {"cls": "badge-chip priority-medium", "icon": "bi bi-activity"},
    "low": {"cls": "badge-chip priority-low", "icon": "bi bi-arrow-down"},
}
SENTIMENT_TONE_CLASSES = {
    "red": "sentiment-negative",
    "yellow": "sentiment-neutral",
    "green": "sentiment-positive",
}
TREND_WINDOW = timedelta(days=7)
ESCALATED_PRIORITIES = ("high", "urgent")


def now_ts():
    return datetime.now(timezone.utc).isoformat()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = _as_utc(value)
    return value.isoformat() if value else None


def format_timestamp(value) -> str:
    if not value:
        return "—"
    dt = parse_timestamp(value)
    if dt == datetime.min.replace(tzinfo=timezone.utc):
        return str(value)
    return dt.strftime("%b %d, %Y %I:%M %p UTC")


def humanize(value: Optional[str]) -> str:
    if not value:
        return "Unknown"
    return str(value).replace("_", " ")


def highlight(value: Optional[str], term: Optional[str]) -> Markup:
    """Escape ``value`` and wrap case-insensitive matches of ``term`` in <mark>."""

    source = value or ""
    needle = (term or "").strip()
    if not needle:
        return escape(source)
    lowered = source.lower()
    needle_lower = needle.lower()
    parts: list[Markup] = []
    start = 0
    while True:
        idx = lowered.find(needle_lower, start)
        if idx == -1:
            parts.append(escape(source[start:]))
            break
        parts.append(escape(source[start:idx]))
        parts.append(Markup("<mark>%s</mark>") % source[idx:idx + len(needle)])
        start = idx + len(needle)
    return Markup("").join(parts)


app.jinja_env.filters["highlight"] = highlight
app.jinja_env.filters["humanize"] = humanize


# --------------------------------------------------------------------------------------
# Ticket queries
# --------------------------------------------------------------------------------------
class TicketQueryError(ValueError):
    """Raised when request parameters are malformed; maps to a 400."""


TICKET_FILTER_COLUMNS = {
    "status": SupportTicket.ticket_status,
    "priority": SupportTicket.ticket_priority,
    "product_area": SupportTicket.product_area,
    "user_persona": SupportTicket.user_persona,
    "client_firm_tier": SupportTicket.client_firm_tier,
}
DATE_RANGE_KEYS = ("date_range_start", "date_range_end")


def _parse_bound(name: str, value) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    text_value = str(value)
    if text_value.endswith("Z"):
        text_value = text_value[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text_value))
    except ValueError as exc:
        raise TicketQueryError(f"{name} must be an ISO-8601 timestamp.") from exc


def parse_ticket_filters(args: Optional[Mapping[str, object]]) -> dict[str, object]:
    """Validate the optional equality filters; blank values are dropped."""

    filters: dict[str, object] = {}
    args = args or {}

    for name in TICKET_FILTER_COLUMNS:
        raw = args.get(name)
        if raw is None:
            continue
        if isinstance(raw, str):
            raw = raw.strip()
            if not raw:
                continue
        if name == "client_firm_tier":
            try:
                filters[name] = int(raw)
            except (TypeError, ValueError) as exc:
                raise TicketQueryError("client_firm_tier must be an integer.") from exc
        else:
            filters[name] = str(raw)

    for name in DATE_RANGE_KEYS:
        raw = args.get(name)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        filters[name] = _parse_bound(name, raw.strip() if isinstance(raw, str) else raw)

    start = filters.get("date_range_start")
    end = filters.get("date_range_end")
    if start and end and start > end:
        raise TicketQueryError("date_range_start must not be after date_range_end.")
    return filters


def build_ticket_query(session: Session, filters: Mapping[str, object], query: Optional[Query] = None) -> Query:
    """AND together every provided filter as a bound parameter, newest first."""

    q = query if query is not None else session.query(SupportTicket)

    for name, column in TICKET_FILTER_COLUMNS.items():
        if name in filters:
            q = q.filter(column == filters[name])

    if "date_range_start" in filters:
        q = q.filter(SupportTicket.timestamp_utc >= filters["date_range_start"])
    if "date_range_end" in filters:
        q = q.filter(SupportTicket.timestamp_utc <= filters["date_range_end"])

    return q.order_by(SupportTicket.timestamp_utc.desc(), SupportTicket.ticket_id.desc())


def ticket_to_dict(row: SupportTicket) -> dict[str, object]:
    return {
        "ticket_id": row.ticket_id,
        "timestamp_utc": _iso(row.timestamp_utc),
        "user_id": row.user_id,
        "user_persona": row.user_persona,
        "client_firm_tier": row.client_firm_tier,
        "product_area": row.product_area,
        "ticket_status": row.ticket_status,
        "ticket_priority": row.ticket_priority,
        "ticket_subject": row.ticket_subject,
        "ticket_body": row.ticket_body,
    }


def enrichment_to_dict(row: Optional[EnrichedFeedback]) -> dict[str, object]:
    if row is None:
        return {
            "enrichment_id": None,
            "processed_at_utc": None,
            "feedback_category": None,
            "detected_topics": None,
            "sentiment_score": None,
            "priority_score": None,
            "mentioned_entities": None,
            "is_churn_risk": None,
            "llm_summary": None,
        }
    return {
        "enrichment_id": row.enrichment_id,
        "processed_at_utc": _iso(row.processed_at_utc),
        "feedback_category": row.feedback_category,
        "detected_topics": row.detected_topics,
        "sentiment_score": row.sentiment_score,
        "priority_score": row.priority_score,
        "mentioned_entities": row.mentioned_entities,
        "is_churn_risk": bool(row.is_churn_risk),
        "llm_summary": row.llm_summary,
    }


def list_tickets(filters: Optional[Mapping[str, object]] = None) -> list[dict[str, object]]:
    parsed = parse_ticket_filters(filters)
    session = get_session()
    try:
        return [ticket_to_dict(row) for row in build_ticket_query(session, parsed).all()]
    finally:
        session.close()


def get_ticket(ticket_id: str, include_enrichment: bool = False) -> Optional[dict[str, object]]:
    session = get_session()
    try:
        if include_enrichment:
            found = (
                session.query(SupportTicket, EnrichedFeedback)
                .outerjoin(EnrichedFeedback, EnrichedFeedback.ticket_id == SupportTicket.ticket_id)
                .filter(SupportTicket.ticket_id == ticket_id)
                .one_or_none()
            )
            if found is None:
                return None
            ticket, enrichment = found
            return {**ticket_to_dict(ticket), **enrichment_to_dict(enrichment)}

        ticket = (
            session.query(SupportTicket)
            .filter(SupportTicket.ticket_id == ticket_id)
            .one_or_none()
        )
        return ticket_to_dict(ticket) if ticket else None
    finally:
        session.close()


def _like_pattern(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_tickets(query: Optional[str]) -> list[dict[str, object]]:
    """Substring match on subject or body; ``query`` is used exactly as given."""

    if not query:
        raise TicketQueryError("Query parameter required")

    pattern = _like_pattern(query)
    session = get_session()
    try:
        q = session.query(SupportTicket).filter(
            or_(
                func.lower(SupportTicket.ticket_subject).like(pattern, escape="\\"),
                func.lower(SupportTicket.ticket_body).like(pattern, escape="\\"),
            )
        )
        q = q.order_by(SupportTicket.timestamp_utc.desc(), SupportTicket.ticket_id.desc())
        return [ticket_to_dict(row) for row in q.all()]
    finally:
        session.close()


def get_enriched_tickets(filters: Optional[Mapping[str, object]] = None) -> list[dict[str, object]]:
    parsed = parse_ticket_filters(filters)
    session = get_session()
    try:
        q = session.query(SupportTicket, EnrichedFeedback).outerjoin(
            EnrichedFeedback, EnrichedFeedback.ticket_id == SupportTicket.ticket_id
        )
        rows = build_ticket_query(session, parsed, query=q).all()
        return [
            {**ticket_to_dict(ticket), **enrichment_to_dict(enrichment)}
            for ticket, enrichment in rows
        ]
    finally:
        session.close()


def _format_change(current: int, previous: int) -> str:
    if previous == 0:
        pct = 100 if current else 0
    else:
        pct = round((current - previous) * 100 / previous)
    return f"{pct:+d}%"


def get_analytics(now: Optional[datetime] = None) -> dict[str, object]:
    now = _as_utc(now) or datetime.now(timezone.utc)
    session = get_session()
    try:
        total = session.query(func.count(SupportTicket.ticket_id)).scalar() or 0

        def breakdown(column) -> dict[str, int]:
            rows = (
                session.query(column, func.count(SupportTicket.ticket_id))
                .group_by(column)
                .all()
            )
            return {("null" if key is None else str(key)): int(count) for key, count in rows}

        def window_count(start: datetime, end: datetime, priorities=None) -> int:
            q = session.query(func.count(SupportTicket.ticket_id)).filter(
                SupportTicket.timestamp_utc >= start,
                SupportTicket.timestamp_utc < end,
            )
            if priorities:
                q = q.filter(SupportTicket.ticket_priority.in_(priorities))
            return q.scalar() or 0

        status_breakdown = breakdown(SupportTicket.ticket_status)
        priority_breakdown = breakdown(SupportTicket.ticket_priority)
        product_area_breakdown = breakdown(SupportTicket.product_area)

        current_start = now - TREND_WINDOW
        previous_start = current_start - TREND_WINDOW
        # Upper bound is exclusive; nudge it so tickets stamped exactly `now` count.
        current_end = now + timedelta(microseconds=1)

        topic_counter: Counter[str] = Counter(
            {area: count for area, count in product_area_breakdown.items() if area != "null"}
        )

        return {
            "total_tickets": int(total),
            "status_breakdown": status_breakdown,
            "priority_breakdown": priority_breakdown,
            "product_area_breakdown": product_area_breakdown,
            "recent_trends": {
                "trending_topics": [area for area, _ in topic_counter.most_common(3)],
                "volume_change": _format_change(
                    window_count(current_start, current_end),
                    window_count(previous_start, current_start),
                ),
                "priority_escalation": _format_change(
                    window_count(current_start, current_end, ESCALATED_PRIORITIES),
                    window_count(previous_start, current_start, ESCALATED_PRIORITIES),
                ),
            },
        }
    finally:
        session.close()


def enrich_ticket(ticket_id: str):  # noqa: ARG001
    raise NotImplementedError("AI enrichment not implemented yet")


# --------------------------------------------------------------------------------------
# Demo data
# --------------------------------------------------------------------------------------
DEMO_TICKETS = [
    {
        "ticket_id": "ST-50101",
        "hours_ago": 2,
        "user_id": "U-1042",
        "user_persona": "Equity_Research_Associate",
        "client_firm_tier": 1,
        "product_area": "AI_Features",
        "ticket_status": "escalated",
        "ticket_priority": "urgent",
        "ticket_subject": "Kensho transcript summaries failing for large caps",
        "ticket_body": "The AI summary panel shows an error and then times out for every earnings call transcript since this morning.",
    },
    {
        "ticket_id": "ST-50102",
        "hours_ago": 5,
        "user_id": "U-2210",
        "user_persona": "Portfolio_Manager",
        "client_firm_tier": 1,
        "product_area": "ESG_Data",
        "ticket_status": "open",
        "ticket_priority": "medium",
        "ticket_subject": "ESG data coverage for emerging markets",
        "ticket_body": "Would love to see more ESG scores and carbon emission data for emerging market issuers.",
    },
    {
        "ticket_id": "ST-50103",
        "hours_ago": 20,
        "user_id": "U-3307",
        "user_persona": "Quantitative_Analyst",
        "client_firm_tier": 2,
        "product_area": "API",
        "ticket_status": "open",
        "ticket_priority": "high",
        "ticket_subject": "API latency issues with private market data",
        "ticket_body": "The endpoint for private market funding round data is very slow and often times out.",
    },
    {
        "ticket_id": "ST-50104",
        "hours_ago": 30,
        "user_id": "U-4471",
        "user_persona": "Investment_Banking_Analyst",
        "client_firm_tier": 3,
        "product_area": "AI_Features",
        "ticket_status": "closed",
        "ticket_priority": "low",
        "ticket_subject": "Bug with copy/paste in Kensho document search",
        "ticket_body": "Copy to clipboard drops the source link. Resolved after the latest release, thanks!",
    },
    {
        "ticket_id": "ST-50105",
        "hours_ago": 52,
        "user_id": "U-5120",
        "user_persona": None,
        "client_firm_tier": 2,
        "product_area": None,
        "ticket_status": "closed",
        "ticket_priority": "low",
        "ticket_subject": "Great onboarding session",
        "ticket_body": "The training team was excellent and very helpful. We appreciate the follow-up notes.",
    },
]


def seed_demo_tickets(now: Optional[datetime] = None) -> int:
    """Insert DEMO_TICKETS when the ticket table is empty; returns rows added."""

    now = _as_utc(now) or datetime.now(timezone.utc)
    session = get_session()
    try:
        if session.query(func.count(SupportTicket.ticket_id)).scalar():
            return 0
        for item in DEMO_TICKETS:
            values = {k: v for k, v in item.items() if k != "hours_ago"}
            values["timestamp_utc"] = now - timedelta(hours=item["hours_ago"])
            session.add(SupportTicket(**values))
        session.commit()
        app.logger.info("Seeded %d demo tickets", len(DEMO_TICKETS))
        return len(DEMO_TICKETS)
    except SQLAlchemyError:
        session.rollback()
        raise
    finally:
        session.close()


# --------------------------------------------------------------------------------------
# Templates (kept inline for single-file simplicity)
# --------------------------------------------------------------------------------------
BASE_HTML = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Ticket Intelligence</title>
  <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/css/bootstrap.min.css" rel="stylesheet">
  <link href="https://cdn.jsdelivr.net/npm/bootstrap-icons@1.11.3/font/bootstrap-icons.css" rel="stylesheet">
  <style>
    :root {
      --ti-navy: #041420;
      --ti-panel: #092946;
      --ti-cyan: #71FDFF;
      --ti-ink: #e8f4ff;
      --ti-muted: rgba(232, 244, 255, 0.62);
      --ti-border: rgba(113, 253, 255, 0.3);
    }

    html, body {
      min-height: 100%;
      background: radial-gradient(circle at top, rgba(113,253,255,.10), transparent 60%), var(--ti-navy);
      color: var(--ti-ink);
      font-family: "Inter", "Segoe UI", "Helvetica Neue", Arial, sans-serif;
    }

    a { color: var(--ti-cyan); text-decoration: none; }

    .app-header {
      display: flex;
      align-items: center;
      justify-content: space-between;
      padding: 0.85rem 1.5rem;
      border-bottom: 1px solid var(--ti-border);
      position: sticky;
      top: 0;
      z-index: 1020;
      background: rgba(4, 20, 32, 0.92);
      backdrop-filter: blur(8px);
    }

    .brand-mark { display: flex; align-items: center; gap: 0.6rem; font-weight: 600; color: var(--ti-ink); }

    .app-shell { display: flex; min-height: calc(100vh - 64px); }

    .app-sidebar {
      width: 76px;
      padding: 1.25rem 0.75rem;
      display: flex;
      flex-direction: column;
      align-items: center;
      gap: 1rem;
      border-right: 1px solid rgba(255,255,255,0.06);
    }

    .nav-pill {
      display: grid;
      place-items: center;
      width: 44px;
      height: 44px;
      border-radius: 12px;
      color: var(--ti-muted);
      font-size: 1.2rem;
    }

    .nav-pill.active, .nav-pill:hover { background: rgba(113,253,255,0.18); color: var(--ti-cyan); }

    .app-content { flex: 1; padding: 1.75rem clamp(1rem, 2vw, 3rem); display: flex; flex-direction: column; gap: 1.25rem; }

    .surface-card {
      background: rgba(9, 41, 70, 0.55);
      border: 1px solid var(--ti-border);
      border-radius: 18px;
    }

    .stat-kicker { text-transform: uppercase; letter-spacing: 0.12em; font-size: 0.72rem; color: var(--ti-muted); }
    .stat-value { font-size: 2.4rem; font-weight: 600; margin: 0; }
    .text-muted-ti { color: var(--ti-muted); }

    .search-input {
      background: rgba(9, 41, 70, 0.8);
      border: 0;
      border-radius: 16px;
      color: var(--ti-ink);
      padding: 0.75rem 1rem 0.75rem 2.6rem;
    }
    .search-input::placeholder { color: var(--ti-muted); }
    .search-input:focus { background: rgba(9, 41, 70, 0.95); color: var(--ti-ink); box-shadow: 0 0 0 .2rem rgba(113,253,255,0.25); }

    .tab-strip { display: flex; border-bottom: 1px solid rgba(255,255,255,0.1); }
    .tab-strip a {
      flex: 1;
      display: flex;
      align-items: center;
      justify-content: center;
      gap: 0.5rem;
      padding: 0.8rem;
      color: var(--ti-ink);
      font-size: 0.82rem;
    }
    .tab-strip a.active { background: rgba(113,253,255,0.16); border-bottom: 2px solid var(--ti-cyan); }
    .tab-count { border-radius: 999px; padding: 0.1rem 0.55rem; font-size: 0.72rem; background: rgba(255,255,255,0.2); }
    .tab-strip a.active .tab-count { background: var(--ti-cyan); color: var(--ti-navy); }

    .toggle-group .btn { border-radius: 999px; font-size: 0.78rem; }
    .btn-toggle { border: 1px solid var(--ti-border); color: var(--ti-ink); }
    .btn-toggle.active { background: var(--ti-cyan); color: var(--ti-navy); }

    .badge-chip {
      border-radius: 999px;
      padding: 0.25rem 0.7rem;
      font-weight: 600;
      font-size: 0.72rem;
      display: inline-flex;
      align-items: center;
      gap: 0.3rem;
    }
    .badge-open { background: #2563eb; color: #fff; }
    .badge-escalated { background: #dc2626; color: #fff; }
    .badge-closed { background: #16a34a; color: #fff; }
    .badge-unknown { background: #4b5563; color: #fff; }
    .priority-urgent { color: #f87171; }
    .priority-high { color: #fb923c; }
    .priority-medium { color: var(--ti-cyan); }
    .priority-low { color: #4ade80; }
    .sentiment-negative { background: rgba(220,38,38,0.25); color: #fca5a5; }
    .sentiment-neutral { background: rgba(234,179,8,0.22); color: #fde68a; }
    .sentiment-positive { background: rgba(22,163,74,0.25); color: #86efac; }

    .ticket-card { position: relative; padding: 1.2rem; height: 100%; }
    .ticket-card h3 { font-size: 0.95rem; font-weight: 600; }
    .ticket-meta { color: var(--ti-muted); font-size: 0.78rem; }
    .ticket-rank {
      position: absolute;
      right: 0;
      bottom: 1rem;
      background: var(--ti-cyan);
      color: #000;
      padding: 0.2rem 0.9rem;
      font-size: 0.72rem;
      font-weight: 600;
      border-radius: 8px 0 0 8px;
    }
    .avatar {
      width: 28px;
      height: 28px;
      border-radius: 999px;
      display: grid;
      place-items: center;
      background: var(--ti-navy);
      color: var(--ti-cyan);
      font-size: 0.68rem;
      font-weight: 600;
    }

    .table-ti { color: var(--ti-ink); --bs-table-bg: transparent; --bs-table-color: var(--ti-ink); }
    .table-ti thead th { text-transform: uppercase; font-size: 0.68rem; letter-spacing: 0.12em; color: var(--ti-muted); }

    .bar-track { height: 8px; border-radius: 999px; background: rgba(255,255,255,0.1); overflow: hidden; }
    .bar-fill { height: 100%; background: var(--ti-cyan); }
    .bar-fill.negative { background: #dc2626; }
    .bar-fill.neutral { background: #eab308; }
    .bar-fill.positive { background: #16a34a; }

    mark { background: rgba(113,253,255,0.35); color: inherit; padding: 0; }

    .flash-message {
      border-radius: 14px;
      padding: 0.8rem 1rem;
      background: rgba(113,253,255,0.15);
      border: 1px solid var(--ti-border);
    }

    @media (max-width: 767px) {
      .app-shell { flex-direction: column; }
      .app-sidebar { width: 100%; flex-direction: row; justify-content: center; border-right: 0; }
      .tab-strip { flex-wrap: wrap; }
    }
  </style>
</head>
<body>
  <header class="app-header">
    <a class="brand-mark" href="{{ url_for('home') }}">
      <i class="bi bi-stars"></i>
      <span>Ticket Intelligence</span>
    </a>
    <span class="text-muted-ti small">Support signal explorer</span>
  </header>
  <div class="app-shell">
    <aside class="app-sidebar">
      <a class="nav-pill {% if request.endpoint in ('dashboard', 'ticket_page') %}active{% endif %}" href="{{ url_for('dashboard') }}" title="Tickets"><i class="bi bi-grid"></i></a>
      <a class="nav-pill {% if request.endpoint == 'analytics_page' %}active{% endif %}" href="{{ url_for('analytics_page') }}" title="Analytics"><i class="bi bi-bar-chart"></i></a>
    </aside>
    <main class="app-content">
      {% with messages = get_flashed_messages() %}
        {% if messages %}
          <div class="flash-message">{{ messages|join('\n') }}</div>
        {% endif %}
      {% endwith %}
      {% block workspace_content %}{% endblock %}
    </main>
  </div>
<script src="https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/js/bootstrap.bundle.min.js"></script>
</body>
</html>
"""


HOME_HTML = """
{% extends 'base.html' %}
{% block workspace_content %}
<div class="row g-4 align-items-center">
  <div class="col-lg-7">
    <span class="badge-chip badge-open text-uppercase small"><i class="bi bi-stars"></i> Strategic signals</span>
    <h1 class="display-5 fw-semibold mt-3 mb-3">Support Ticket Intelligence</h1>
    <p class="lead text-muted-ti mb-4">Explore the support queue, spot AI, private markets and ESG signals, and see which customers are unhappy before they churn.</p>
    <div class="d-flex flex-wrap gap-3">
      <a class="btn btn-info btn-lg d-flex align-items-center gap-2" href="{{ url_for('dashboard') }}"><i class="bi bi-grid"></i>Open explorer</a>
      <a class="btn btn-outline-light d-flex align-items-center gap-2" href="{{ url_for('analytics_page') }}"><i class="bi bi-bar-chart"></i>Analytics</a>
    </div>
  </div>
  <div class="col-lg-5">
    <div class="surface-card p-4 h-100">
      <h5 class="fw-semibold mb-3">JSON API</h5>
      <ul class="list-unstyled d-flex flex-column gap-2 text-muted-ti small mb-0">
        <li><code>GET /api/tickets</code> filter by status, priority, product area, persona, tier</li>
        <li><code>GET /api/tickets/search?q=</code> subject and body search</li>
        <li><code>GET /api/tickets/enriched</code> tickets with AI enrichment</li>
        <li><code>GET /api/analytics</code> breakdowns and trends</li>
        <li><code>GET /api/health</code> database connectivity</li>
      </ul>
    </div>
  </div>
</div>
{% endblock %}
"""


DASHBOARD_HTML = """
{% extends 'base.html' %}
{% block workspace_content %}
{% set state = view.state %}
<form method="get" action="{{ url_for('dashboard') }}" class="position-relative">
  <i class="bi bi-search position-absolute text-muted-ti" style="left: 1rem; top: 50%; transform: translateY(-50%);"></i>
  <input class="form-control search-input" type="text" name="q" value="{{ state.search }}"
         placeholder="Search tickets by ID, subject, body, product area or persona..." data-testid="search-input">
  {% for key, value in state.to_args().items() if key != 'q' %}
  <input type="hidden" name="{{ key }}" value="{{ value }}">
  {% endfor %}
</form>

<div class="row g-3">
  <div class="col-md-4 col-xl-3">
    <div class="surface-card p-4 h-100">
      <div class="stat-kicker">Tickets loaded</div>
      <p class="stat-value">{{ view.total }}</p>
      <div class="text-muted-ti small">{{ view.cards|length }} in this view</div>
    </div>
  </div>
  <div class="col-md-8 col-xl-9">
    <div class="surface-card p-4 h-100">
      <div class="stat-kicker mb-2">Sentiment in this view</div>
      {% set summary = view.sentiment_summary %}
      {% for label, tone in [('Positive', 'positive'), ('Neutral', 'neutral'), ('Negative', 'negative')] %}
      <div class="mb-2">
        <div class="d-flex justify-content-between small">
          <span>{{ label }}</span>
          <span class="text-muted-ti">{{ summary.percentages[label] }}% ({{ summary.counts[label] }})</span>
        </div>
        <div class="bar-track"><div class="bar-fill {{ tone }}" style="width: {{ summary.percentages[label] }}%"></div></div>
      </div>
      {% endfor %}
    </div>
  </div>
</div>

<div class="surface-card overflow-hidden">
  <nav class="tab-strip">
    {% for tab in tabs %}
    <a class="{% if tab.key == state.tab %}active{% endif %}" href="{{ url_for('dashboard', **state.with_tab(tab.key).to_args()) }}" data-testid="tab-{{ tab.key }}">
      <i class="{{ tab.icon }}"></i>
      <span>{{ tab.label }}</span>
      <span class="tab-count">{{ view.tab_counts[tab.key] }}</span>
    </a>
    {% endfor %}
  </nav>
  {% if view.tag_counts %}
  <div class="d-flex flex-wrap gap-2 px-3 pt-3 toggle-group" data-testid="tag-filter">
    {% for tag, count in view.tag_counts.items() %}
    <a class="btn btn-sm btn-toggle {% if tag in state.tags %}active{% endif %}" href="{{ url_for('dashboard', **state.toggle_tag(tag).to_args()) }}">{{ tag }} ({{ count }})</a>
    {% endfor %}
  </div>
  {% endif %}
  <div class="d-flex flex-wrap align-items-center justify-content-between gap-3 p-3">
    <div class="d-flex flex-wrap gap-2 toggle-group">
      <span class="text-muted-ti small align-self-center">Priority</span>
      <a class="btn btn-sm btn-toggle {% if state.priority_sort == 'high' %}active{% endif %}" href="{{ url_for('dashboard', **state.toggle_priority_sort('high').to_args()) }}">High first</a>
      <a class="btn btn-sm btn-toggle {% if state.priority_sort == 'low' %}active{% endif %}" href="{{ url_for('dashboard', **state.toggle_priority_sort('low').to_args()) }}">Low first</a>
      <span class="text-muted-ti small align-self-center ms-2">Sentiment</span>
      <a class="btn btn-sm btn-toggle {% if state.sentiment_sort == 'negative' %}active{% endif %}" href="{{ url_for('dashboard', **state.toggle_sentiment_sort('negative').to_args()) }}">Most negative</a>
      <a class="btn btn-sm btn-toggle {% if state.sentiment_sort == 'positive' %}active{% endif %}" href="{{ url_for('dashboard', **state.toggle_sentiment_sort('positive').to_args()) }}">Most positive</a>
      <span class="text-muted-ti small align-self-center ms-2">Date</span>
      <a class="btn btn-sm btn-toggle {% if state.date_sort == 'newest' %}active{% endif %}" href="{{ url_for('dashboard', **state.with_date_sort('newest').to_args()) }}">Newest</a>
      <a class="btn btn-sm btn-toggle {% if state.date_sort == 'oldest' %}active{% endif %}" href="{{ url_for('dashboard', **state.with_date_sort('oldest').to_args()) }}">Oldest</a>
    </div>
    <div class="d-flex gap-2 toggle-group">
      <a class="btn btn-sm btn-toggle {% if state.view == 'grid' %}active{% endif %}" href="{{ url_for('dashboard', **state.with_view('grid').to_args()) }}" title="Grid"><i class="bi bi-grid-3x3-gap"></i></a>
      <a class="btn btn-sm btn-toggle {% if state.view == 'list' %}active{% endif %}" href="{{ url_for('dashboard', **state.with_view('list').to_args()) }}" title="List"><i class="bi bi-list-ul"></i></a>
    </div>
  </div>
</div>

{% if not view.cards %}
<div class="surface-card p-5 text-center">
  <div class="fw-semibold mb-2">No tickets found</div>
  <p class="text-muted-ti mb-0">Nothing matches the current tab and search.</p>
</div>
{% elif state.view == 'grid' %}
<div class="row g-4">
  {% for card in view.cards %}
  {% set t = card.ticket %}
  {% set status_style = status_badges.get(t.ticket_status, unknown_status_badge) %}
  {% set priority_style = priority_badges.get(t.ticket_priority, priority_badges['low']) %}
  <div class="col-12 col-md-6 col-xl-4 col-xxl-3">
    <div class="surface-card ticket-card" data-testid="ticket-card-{{ loop.index0 }}">
      <div class="d-flex align-items-center justify-content-between mb-3">
        <span class="{{ status_style.cls }}"><i class="{{ status_style.icon }}"></i>{{ t.ticket_status }}</span>
        <span class="small fw-semibold {{ priority_style.cls }}">{{ t.ticket_priority }}</span>
      </div>
      <h3><a class="text-reset" href="{{ url_for('ticket_page', ticket_id=t.ticket_id) }}">{{ (t.ticket_subject or 'No Subject')|highlight(state.search) }}</a></h3>
      <div class="ticket-meta mb-2">
        <i class="bi bi-exclamation-circle"></i>
        {{ t.product_area|humanize }} • {{ t.user_persona|humanize }} • <span class="priority-medium">Tier {{ t.client_firm_tier }}</span>
      </div>
      <div class="d-flex align-items-center gap-2 mb-3">
        <span class="badge-chip {{ tone_classes[card.sentiment_tone] }}">{{ card.sentiment_label }} {{ '%.2f'|format(card.sentiment) }}</span>
        <span class="ticket-meta"><i class="bi bi-clock"></i> {{ card.time_ago }}</span>
      </div>
      <div class="d-flex align-items-center gap-2">
        <span class="avatar">{{ card.assignee.initials }}</span>
        <div>
          <div class="small fw-semibold">{{ card.assignee.name }}</div>
          <div class="ticket-meta">{{ card.assignee.role }}</div>
        </div>
      </div>
      <div class="ticket-rank">#{{ card.position }}</div>
    </div>
  </div>
  {% endfor %}
</div>
{% else %}
<div class="surface-card p-3">
  <div class="table-responsive">
    <table class="table table-ti align-middle mb-0">
      <thead>
        <tr>
          <th scope="col">#</th>
          <th scope="col">Ticket</th>
          <th scope="col">Status</th>
          <th scope="col">Priority</th>
          <th scope="col">Sentiment</th>
          <th scope="col">Assignee</th>
          <th scope="col">Age</th>
        </tr>
      </thead>
      <tbody>
        {% for card in view.cards %}
        {% set t = card.ticket %}
        {% set status_style = status_badges.get(t.ticket_status, unknown_status_badge) %}
        {% set priority_style = priority_badges.get(t.ticket_priority, priority_badges['low']) %}
        <tr data-testid="ticket-row-{{ loop.index0 }}">
          <td>{{ card.position }}</td>
          <td>
            <a class="text-reset fw-semibold" href="{{ url_for('ticket_page', ticket_id=t.ticket_id) }}">{{ (t.ticket_subject or 'No Subject')|highlight(state.search) }}</a>
            <div class="ticket-meta">{{ t.ticket_id|highlight(state.search) }} • {{ t.product_area|humanize }}</div>
          </td>
          <td><span class="{{ status_style.cls }}"><i class="{{ status_style.icon }}"></i>{{ t.ticket_status }}</span></td>
          <td><span class="small fw-semibold {{ priority_style.cls }}">{{ t.ticket_priority }}</span></td>
          <td><span class="badge-chip {{ tone_classes[card.sentiment_tone] }}">{{ card.sentiment_label }} {{ '%.2f'|format(card.sentiment) }}</span></td>
          <td>{{ card.assignee.name }}<div class="ticket-meta">{{ card.assignee.role }}</div></td>
          <td class="ticket-meta">{{ card.time_ago }}</td>
        </tr>
        {% endfor %}
      </tbody>
    </table>
  </div>
</div>
{% endif %}
{% endblock %}
"""


DASHBOARD_ERROR_HTML = """
{% extends 'base.html' %}
{% block workspace_content %}
<div class="surface-card p-5 text-center" data-testid="dashboard-error">
  <i class="bi bi-exclamation-circle display-5 text-danger"></i>
  <p class="mt-3 text-danger">Error loading tickets: {{ error }}</p>
  <a class="btn btn-info" href="{{ retry_url }}">Retry</a>
</div>
{% endblock %}
"""


DETAIL_HTML = """
{% extends 'base.html' %}
{% block workspace_content %}
{% set status_style = status_badges.get(t.ticket_status, unknown_status_badge) %}
{% set priority_style = priority_badges.get(t.ticket_priority, priority_badges['low']) %}
<div class="d-flex flex-wrap align-items-start justify-content-between gap-3">
  <div>
    <span class="badge-chip badge-unknown text-uppercase small"><i class="bi bi-ticket-detailed"></i> {{ t.ticket_id }}</span>
    <h2 class="fw-semibold mt-2 mb-2">{{ t.ticket_subject or 'No Subject' }}</h2>
    <div class="d-flex flex-wrap gap-2 text-muted-ti small">
      <span><i class="bi bi-person-circle me-1"></i>{{ t.user_id }}</span>
      <span>• {{ t.user_persona|humanize }}</span>
      <span>• Tier {{ t.client_firm_tier }}</span>
      <span>• {{ format_ts(t.timestamp_utc) }}</span>
    </div>
  </div>
  <div class="d-flex flex-wrap gap-2">
    <span class="{{ status_style.cls }}"><i class="{{ status_style.icon }}"></i>{{ t.ticket_status }}</span>
    <span class="badge-chip {{ priority_style.cls }}"><i class="{{ priority_style.icon }}"></i>{{ t.ticket_priority }} priority</span>
    <span class="badge-chip {{ tone_class }}">{{ sentiment_label }} {{ '%.2f'|format(sentiment) }}</span>
  </div>
</div>

<div class="row g-4">
  <div class="col-xl-8">
    <div class="surface-card p-4">
      <div class="d-flex align-items-center justify-content-between mb-3">
        <h5 class="fw-semibold mb-0">Ticket body</h5>
        <span class="badge-chip badge-unknown"><i class="bi bi-tag"></i>{{ t.product_area|humanize }}</span>
      </div>
      <p class="mb-0" style="white-space: pre-line;">{{ t.ticket_body }}</p>
    </div>
  </div>
  <div class="col-xl-4">
    <div class="surface-card p-4">
      <h5 class="fw-semibold mb-3">AI enrichment</h5>
      {% if t.enrichment_id %}
        <dl class="small mb-0">
          <dt class="text-muted-ti">Category</dt><dd>{{ t.feedback_category or '—' }}</dd>
          <dt class="text-muted-ti">Topics</dt><dd>{{ (t.detected_topics or [])|join(', ') or '—' }}</dd>
          <dt class="text-muted-ti">Model sentiment</dt><dd>{{ t.sentiment_score if t.sentiment_score is not none else '—' }}</dd>
          <dt class="text-muted-ti">Priority score</dt><dd>{{ t.priority_score if t.priority_score is not none else '—' }}</dd>
          <dt class="text-muted-ti">Churn risk</dt><dd>{{ 'Yes' if t.is_churn_risk else 'No' }}</dd>
          <dt class="text-muted-ti">Summary</dt><dd>{{ t.llm_summary or '—' }}</dd>
          <dt class="text-muted-ti">Processed</dt><dd>{{ format_ts(t.processed_at_utc) }}</dd>
        </dl>
      {% else %}
        <p class="text-muted-ti small mb-0">This ticket has not been enriched yet.</p>
      {% endif %}
    </div>
  </div>
</div>
<div><a href="{{ url_for('dashboard') }}"><i class="bi bi-arrow-left"></i> Back to tickets</a></div>
{% endblock %}
"""


ANALYTICS_HTML = """
{% extends 'base.html' %}
{% block workspace_content %}
<section>
  <span class="badge-chip badge-open text-uppercase small"><i class="bi bi-bar-chart"></i> Analytics</span>
  <h1 class="fw-semibold display-6 mt-2 mb-0">Queue overview</h1>
</section>

<div class="row g-3">
  <div class="col-md-4">
    <div class="surface-card p-4 h-100">
      <div class="stat-kicker">Total tickets</div>
      <p class="stat-value">{{ analytics.total_tickets }}</p>
    </div>
  </div>
  <div class="col-md-4">
    <div class="surface-card p-4 h-100">
      <div class="stat-kicker">Volume, last 7 days</div>
      <p class="stat-value">{{ analytics.recent_trends.volume_change }}</p>
    </div>
  </div>
  <div class="col-md-4">
    <div class="surface-card p-4 h-100">
      <div class="stat-kicker">High + urgent, last 7 days</div>
      <p class="stat-value">{{ analytics.recent_trends.priority_escalation }}</p>
    </div>
  </div>
</div>

<div class="row g-3">
  {% for title, counts in [('By status', analytics.status_breakdown), ('By priority', analytics.priority_breakdown), ('By product area', analytics.product_area_breakdown)] %}
  <div class="col-lg-4">
    <div class="surface-card p-4 h-100">
      <h6 class="text-uppercase small text-muted-ti mb-3">{{ title }}</h6>
      {% for name, count in counts|dictsort(by='value', reverse=true) %}
      <div class="mb-2">
        <div class="d-flex justify-content-between small">
          <span>{{ 'Unknown' if name == 'null' else name|humanize }}</span>
          <span class="text-muted-ti">{{ count }}</span>
        </div>
        <div class="bar-track"><div class="bar-fill" style="width: {{ (count * 100 / analytics.total_tickets)|round|int if analytics.total_tickets else 0 }}%"></div></div>
      </div>
      {% else %}
      <div class="text-muted-ti small">No tickets yet.</div>
      {% endfor %}
    </div>
  </div>
  {% endfor %}
</div>

<div class="surface-card p-4">
  <h6 class="text-uppercase small text-muted-ti mb-2">Trending product areas</h6>
  <div class="d-flex flex-wrap gap-2">
    {% for topic in analytics.recent_trends.trending_topics %}
    <span class="badge-chip badge-unknown">{{ topic|humanize }}</span>
    {% else %}
    <span class="text-muted-ti small">Nothing trending yet.</span>
    {% endfor %}
  </div>
</div>
{% endblock %}
"""


# --------------------------------------------------------------------------------------
# JSON API
# --------------------------------------------------------------------------------------
@app.route("/api/health")
def api_health():
    try:
        ping_database()
    except SQLAlchemyError as exc:
        app.logger.warning("Health check failed: %s", exc)
        return jsonify(
            {"status": "unhealthy", "database": "disconnected", "timestamp": now_ts()}
        ), 503
    return jsonify({"status": "healthy", "database": "connected", "timestamp": now_ts()})


@app.route("/api/tickets")
def api_list_tickets():
    try:
        filters = parse_ticket_filters(request.args)
    except TicketQueryError as exc:
        return jsonify({"error": str(exc)}), 400
    try:
        return jsonify(list_tickets(filters))
    except SQLAlchemyError:
        app.logger.exception("Error fetching tickets")
        return jsonify({"error": "Failed to fetch tickets"}), 500


@app.route("/api/tickets/search")
def api_search_tickets():
    query = request.args.get("q")
    if not query:
        return jsonify({"error": "Query parameter required"}), 400
    try:
        return jsonify(search_tickets(query))
    except SQLAlchemyError:
        app.logger.exception("Error searching tickets")
        return jsonify({"error": "Failed to search tickets"}), 500


@app.route("/api/tickets/enriched")
def api_enriched_tickets():
    try:
        filters = parse_ticket_filters(request.args)
    except TicketQueryError as exc:
        return jsonify({"error": str(exc)}), 400
    try:
        return jsonify(get_enriched_tickets(filters))
    except SQLAlchemyError:
        app.logger.exception("Error fetching enriched tickets")
        return jsonify({"error": "Failed to fetch enriched tickets"}), 500


@app.route("/api/tickets/<ticket_id>")
def api_get_ticket(ticket_id: str):
    try:
        ticket = get_ticket(ticket_id)
    except SQLAlchemyError:
        app.logger.exception("Error fetching ticket %s", ticket_id)
        return jsonify({"error": "Failed to fetch ticket"}), 500
    if ticket is None:
        return jsonify({"error": "Ticket not found"}), 404
    return jsonify(ticket)


@app.route("/api/tickets/<ticket_id>/enrich", methods=["POST"])
def api_enrich_ticket(ticket_id: str):
    try:
        return jsonify(enrich_ticket(ticket_id))
    except NotImplementedError as exc:
        return jsonify({"error": str(exc)}), 501


@app.route("/api/analytics")
def api_analytics():
    try:
        return jsonify(get_analytics())
    except SQLAlchemyError:
        app.logger.exception("Error fetching analytics")
        return jsonify({"error": "Failed to fetch analytics"}), 500


# --------------------------------------------------------------------------------------
# Pages
# --------------------------------------------------------------------------------------
def load_ticket_snapshot() -> list[dict]:
    if EXPLORER_API_URL:
        with TicketApiClient(EXPLORER_API_URL) as client:
            return client.get_enriched_tickets()
    return get_enriched_tickets()


@app.route("/")
def home():
    return render_template_string(HOME_HTML)


@app.route("/dashboard")
def dashboard():
    state = ExplorerState.from_args(request.args)
    explorer = TicketExplorer(load_ticket_snapshot)
    try:
        view = explorer.view(state)
    except TicketApiError as exc:
        app.logger.warning("Dashboard snapshot fetch failed: %s", exc)
        error = str(exc)
    except SQLAlchemyError as exc:
        app.logger.warning("Dashboard snapshot fetch failed: %s", exc)
        error = "Failed to fetch tickets"
    else:
        return render_template_string(
            DASHBOARD_HTML,
            view=view,
            tabs=TABS,
            status_badges=STATUS_BADGES,
            unknown_status_badge=UNKNOWN_STATUS_BADGE,
            priority_badges=PRIORITY_BADGES,
            tone_classes=SENTIMENT_TONE_CLASSES,
        )

    return render_template_string(
        DASHBOARD_ERROR_HTML,
        error=error,
        retry_url=request.full_path,
    ), 500


@app.route("/dashboard/tickets/<ticket_id>")
def ticket_page(ticket_id: str):
    ticket = get_ticket(ticket_id, include_enrichment=True)
    if not ticket:
        flash("Ticket not found.")
        return redirect(url_for("dashboard"))

    score = sentiment_score(ticket)
    label, tone = sentiment_label(score)
    return render_template_string(
        DETAIL_HTML,
        t=ticket,
        sentiment=score,
        sentiment_label=label,
        tone_class=SENTIMENT_TONE_CLASSES[tone],
        status_badges=STATUS_BADGES,
        unknown_status_badge=UNKNOWN_STATUS_BADGE,
        priority_badges=PRIORITY_BADGES,
        format_ts=format_timestamp,
    )


@app.route("/dashboard/analytics")
def analytics_page():
    return render_template_string(ANALYTICS_HTML, analytics=get_analytics())


# --------------------------------------------------------------------------------------
# Jinja loader (since we keep templates inline in this single file)
# --------------------------------------------------------------------------------------
app.jinja_loader = DictLoader({
    "base.html": BASE_HTML,
    "home.html": HOME_HTML,
    "dashboard.html": DASHBOARD_HTML,
    "dashboard_error.html": DASHBOARD_ERROR_HTML,
    "detail.html": DETAIL_HTML,
    "analytics.html": ANALYTICS_HTML,
})

# --------------------------------------------------------------------------------------
# Entrypoint
# --------------------------------------------------------------------------------------
if __name__ == "__main__":
    init_db()
    if os.environ.get("SEED_DEMO_DATA", "").lower() in {"1", "true", "yes"}:
        seed_demo_tickets()
    port = int(os.environ.get("PORT", 5001))
    app.run(host="0.0.0.0", port=port)
