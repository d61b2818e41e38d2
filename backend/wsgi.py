# backend/wsgi.py
from mindsync import create_app

app = create_app()
