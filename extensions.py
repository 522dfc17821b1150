from flask_sqlalchemy import SQLAlchemy # ORM for database interactions.
from flask_login import LoginManager    # Manages user sessions for login and logout functionality.
from flask_migrate import Migrate       # Alembic migrations for the models.

# Initialized without an app; bound in the application factory (create_app in app.py)
# with db.init_app(app). Also used by the snapshot store to reach the `ads` table.
db = SQLAlchemy()

# Session-based login for the JSON API. Configured in create_app.
login_manager = LoginManager()

# Schema migrations (flask db migrate / upgrade).
migrate = Migrate()
