# Alembic will detect models here
from .engineer import Engineer
from .site import Site
from .allocation import Allocation
