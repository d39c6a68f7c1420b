import pytest
from sqlalchemy.orm import sessionmaker

from padel_alert.db.database import Base, create_db_engine
import padel_alert.models  # noqa: F401


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield sessionmaker(engine, expire_on_commit=False)
    Base.metadata.drop_all(engine)
    engine.dispose()
