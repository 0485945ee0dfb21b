from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from vetscheduling.core import config


engine = create_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False


def ensure_scheduling_schema(bind=None) -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        target = bind or engine
        inspector = inspect(target)
        table_names = set(inspector.get_table_names())

        index_statements = []
        if 'appointments' in table_names:
            index_statements.extend([
                'CREATE INDEX IF NOT EXISTS idx_appointments_vet_date ON appointments(veterinarian_id, appointment_date)',
                'CREATE INDEX IF NOT EXISTS idx_appointments_pet ON appointments(pet_id)',
                'CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status)',
            ])
        if 'availability_windows' in table_names:
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_windows_vet_day ON availability_windows(veterinarian_id, day_of_week)'
            )

        with target.begin() as connection:
            for statement in index_statements:
                connection.execute(text(statement))

        _scheduling_schema_checked = True
