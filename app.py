# app.py
# WSGI entrypoint: `gunicorn app:app`
import os

from dailyhistory import create_app

app = create_app(os.getenv("FLASK_CONFIG", "production"))

if __name__ == "__main__":
    app.run(debug=os.getenv("FLASK_DEBUG") == "1")
