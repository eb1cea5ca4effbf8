"""Flask extension singletons; create_app binds them to the application."""
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

csrf = CSRFProtect()
db = SQLAlchemy()

# User loading and the JSON 401 handler live in routes/auth.py.
login_manager = LoginManager()
login_manager.session_protection = "strong"
