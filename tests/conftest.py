import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
import app as ticket_app  # noqa: E402


@pytest.fixture
def db(tmp_path):
    previous = ticket_app.engine
    test_engine = ticket_app.build_engine(db_path=str(tmp_path / "tickets.db"))
    ticket_app.use_engine(test_engine)
    ticket_app.init_db()
    yield test_engine
    ticket_app.use_engine(previous)
    test_engine.dispose()


@pytest.fixture
def client(db):
    return ticket_app.app.test_client()


@pytest.fixture
def seed_ticket(db):
    counter = {"n": 0}

    def _seed(enrichment=None, **overrides):
        counter["n"] += 1
        values = {
            "ticket_id": f"ST-{1000 + counter['n']}",
            "timestamp_utc": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            "user_id": "U-1",
            "user_persona": "Portfolio_Manager",
            "client_firm_tier": 1,
            "product_area": "API",
            "ticket_status": "open",
            "ticket_priority": "medium",
            "ticket_subject": "Sample ticket",
            "ticket_body": "Account question",
        }
        values.update(overrides)
        session = ticket_app.get_session()
        try:
            session.add(ticket_app.SupportTicket(**values))
            if enrichment is not None:
                session.add(
                    ticket_app.EnrichedFeedback(ticket_id=values["ticket_id"], **enrichment)
                )
            session.commit()
        finally:
            session.close()
        return values["ticket_id"]

    return _seed
