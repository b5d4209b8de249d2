from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# সেটিংস যাচাই হওয়ার পর স্টার্টআপে ইঞ্জিনের সাথে কানেকশন দিচ্ছি
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

Base = declarative_base()


def configure_engine(database_url: str, **engine_kwargs):
    if database_url.startswith("sqlite"):
        engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(database_url, **engine_kwargs)
    SessionLocal.configure(bind=engine)
    return engine


# প্রতি রিকোয়েস্টে একটি ডাটাবেস সেশন দেওয়ার ছোট ফাংশন
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
