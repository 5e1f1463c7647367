# backend/wsgi.py
from gesticom import create_app

app = create_app()
