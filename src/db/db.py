from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base


def init_db(db_file: Path, *, reset: bool = True, echo: bool = False) -> Session:
    if reset and db_file.exists():
        db_file.unlink()

    engine: Engine = create_engine(f"sqlite:///{db_file}", echo=echo)

    Base.metadata.create_all(engine)
    return sessionmaker(engine)()
