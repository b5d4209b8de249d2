"""ASGI entry point: ``uvicorn app.asgi:app``."""
from app.main import create_app

# এনভায়রনমেন্ট থেকে সেটিংস পড়ে অ্যাপ তৈরি
app = create_app()
