# app/db/base.py
from app.db.base_class import Base  # noqa: F401

# Importa todos los modelos que definen tablas para que Alembic
# y create_all vean la metadata completa.
from app.models import user  # noqa: F401
from app.models import institution  # noqa: F401
from app.models import group  # noqa: F401
from app.models import survey  # noqa: F401
from app.models import assignment  # noqa: F401
from app.models import answer  # noqa: F401
from app.models import audit  # noqa: F401
from app.models import process  # noqa: F401
