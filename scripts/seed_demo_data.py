from datetime import datetime, timezone

from src.application.slot_service import SlotService
from src.infrastructure.config import load_settings
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import build_engine, build_session_factory, session_scope


def seed_slots(db, days: int = 7) -> int:
    today = datetime.now(timezone.utc).date()
    created = SlotService(db).generate_schedule(start_date=today, days=days)
    return len(created)


def main() -> None:
    settings = load_settings()
    engine = build_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)

    with session_scope(build_session_factory(engine)) as db:
        created = seed_slots(db)

    print(f"Seed complete: {created} slots added for {settings.venue_name}.")


if __name__ == "__main__":
    main()
