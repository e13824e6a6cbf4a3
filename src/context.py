from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from src.config import Settings
from src.database.database import make_engine, make_session_factory


class AppContext:
    """
    프로세스 시작 시 한 번 만들어 모든 핸들러에 주입하는 저장소/설정 묶음입니다.
    모듈 전역 싱글턴을 두지 않고, 이 객체의 소유자가 종료 시 close()를 호출합니다.
    """

    def __init__(self, settings: Settings, engine: Engine, session_factory: sessionmaker):
        self.settings = settings
        self.engine = engine
        self.session_factory = session_factory

    @classmethod
    def create(cls, settings: Settings) -> "AppContext":
        engine = make_engine(settings.database_url)
        return cls(settings, engine, make_session_factory(engine))

    def close(self) -> None:
        self.engine.dispose()
