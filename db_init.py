# db_init.py
from pathlib import Path

from werkzeug.security import generate_password_hash

from config import Config
from models import Base, User, make_engine, make_session_factory


def main():
    # Ensure the SQLite folder exists for local dev
    db_url = Config.SQLALCHEMY_DATABASE_URI
    if db_url.startswith("sqlite:///"):
        Path(db_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    # Ensure exports/ exists for PDFs
    Path(Config.EXPORTS_DIR).mkdir(parents=True, exist_ok=True)

    engine = make_engine(db_url, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)

    SessionLocal = make_session_factory(engine)
    with SessionLocal() as s:
        if s.query(User).first() is None:
            s.add(User(
                username=Config.INITIAL_ADMIN_USERNAME,
                password_hash=generate_password_hash(Config.INITIAL_ADMIN_PASSWORD),
            ))
            s.commit()
            print(f"Created staff user: {Config.INITIAL_ADMIN_USERNAME}")

    print("✅ Database initialized.")
    print(f"DB: {db_url}")
    print(f"Exports dir: {Config.EXPORTS_DIR}")


if __name__ == "__main__":
    main()
