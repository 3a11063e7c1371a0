# backend/wsgi.py
from duka import create_app

app = create_app()
