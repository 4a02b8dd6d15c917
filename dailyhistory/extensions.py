# dailyhistory/extensions.py
from flask_cors import CORS
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy

# Bound to the app in create_app()
db = SQLAlchemy()
login_manager = LoginManager()
cors = CORS()
