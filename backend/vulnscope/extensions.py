# vulnscope/extensions.py
from __future__ import annotations
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()
migrate = Migrate()


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    # Findings cascade off their scan; SQLite ignores FKs unless asked
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_extensions(app, migrations_dir=None):
    db.init_app(app)
    migrate.init_app(app, db, directory=migrations_dir or "migrations")

    with app.app_context():
        engine = db.engine
        if engine.dialect.name == "sqlite" and not event.contains(
            engine, "connect", _enable_sqlite_foreign_keys
        ):
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
