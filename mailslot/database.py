from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
import os

# Allow overriding database via environment (Postgres in production).
# Default is a local sqlite file.
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./mailslot.db")

NAMING_CONVENTION = {
	"ix": "ix_%(column_0_label)s",
	"uq": "uq_%(table_name)s_%(column_0_name)s",
	"ck": "ck_%(table_name)s_%(constraint_name)s",
	"fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
	"pk": "pk_%(table_name)s",
}


def configure_sqlite(target: Engine) -> Engine:
	"""Turn on foreign key enforcement for every new SQLite connection."""
	if target.dialect.name != "sqlite":
		return target

	@event.listens_for(target, "connect")
	def _enable_foreign_keys(dbapi_connection, connection_record):
		cursor = dbapi_connection.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()

	return target


engine = configure_sqlite(create_engine(
	SQLALCHEMY_DATABASE_URL,
	pool_pre_ping=True,
	echo=os.getenv("SQL_ECHO", "").lower() in ("1", "true", "yes"),
))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class Base(DeclarativeBase):
	metadata = MetaData(naming_convention=NAMING_CONVENTION)
