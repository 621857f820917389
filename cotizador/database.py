"""Database configuration and initialization."""
from sqlalchemy import BigInteger, Integer, create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite
IdType = BigInteger().with_variant(Integer, "sqlite")

# Global session and engine
engine = None
db_session = scoped_session(sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False))


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def init_db(app):
    """Initialize database connection."""
    global engine

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    if database_uri.startswith('sqlite'):
        engine = create_engine(
            database_uri,
            echo=app.config.get('SQLALCHEMY_ECHO', False),
            connect_args={'check_same_thread': False}
        )
        event.listen(engine, 'connect', _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            database_uri,
            echo=app.config.get('SQLALCHEMY_ECHO', False),
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20
        )

    db_session.remove()
    db_session.configure(bind=engine)

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the models package."""
    import cotizador.models  # noqa: F401  (registers mappers)
    Base.metadata.create_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


# Alias for easier imports
db = db_session
