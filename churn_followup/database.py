from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from pydantic_settings import BaseSettings, SettingsConfigDict

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


class DatabaseSettings(BaseSettings):
    churn_db_user: str = "postgres"
    churn_db_password: str = "postgres"
    churn_db_name: str = "churn_followup"
    churn_db_host: str = "db"
    churn_db_port: int = 5432
    churn_database_url: str | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def resolved_database_url(self) -> str:
        if self.churn_database_url:
            return self.churn_database_url
        return (
            "postgresql+psycopg2://"
            f"{self.churn_db_user}:{self.churn_db_password}@"
            f"{self.churn_db_host}:{self.churn_db_port}/{self.churn_db_name}"
        )


def build_engine(database_url: str) -> Engine:
    """Engine for the churn store; in-memory SQLite shares one connection."""
    if database_url in IN_MEMORY_URLS:
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


db_settings = DatabaseSettings()
engine = build_engine(db_settings.resolved_database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def check_database_connection(bind: Engine | None = None) -> bool:
    """Round-trip ``SELECT 1``; raises ``OperationalError`` when unreachable."""
    with (bind or engine).connect() as connection:
        connection.execute(text("SELECT 1"))
    return True
