import importlib
import os

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings
from storefront.utils.logging import get_logger

log = get_logger("storefront.db")

DATABASE_URL = settings.DATABASE_URL
IS_SQLITE = DATABASE_URL.startswith("sqlite")

connect_args = {}
if IS_SQLITE:
    connect_args = {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT}

engine = create_engine(DATABASE_URL, future=True, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Connection execution option asking for the write lock at BEGIN.
WRITE_LOCK_OPTION = "storefront_write_lock"

if IS_SQLITE:
    # SQLite has no SELECT ... FOR UPDATE. A transaction that writes or needs
    # row locks starts with BEGIN IMMEDIATE instead, which takes the database
    # write lock up front and serializes writers the way row locks do on other
    # engines. A deferred transaction that reads first cannot wait for the lock.
    # WAL keeps plain readers from blocking (or being blocked by) that lock.
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


# every module defining tables; imported so Base.metadata is complete
MODEL_MODULES = [
    "storefront.models.user",
    "storefront.models.product",
    "storefront.models.inventory",
    "storefront.models.cart",
    "storefront.models.cart_item",
    "storefront.models.order",
]


def init_db(reset: bool = False):
    """
    Initialize DB schema.

    Drops all tables first when `reset` is true or the RESET_DB env var is
    set to 1/true/yes; otherwise existing tables are left in place.
    """
    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    env_reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")
    if reset or env_reset:
        log.info("Resetting database %s", DATABASE_URL)
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    log.info("Database initialized.")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
