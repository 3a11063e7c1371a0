# Overview: Shared Flask extensions (ORM session and Alembic migrations) bound in create_app.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()
