# Overview: Flask extension instances, bound to an app by create_app().

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# One handle per process; each app (and each test app) binds its own engine
db = SQLAlchemy()
migrate = Migrate()
