# Re-export the main Base class from db.py for tracker models
# so every table shares the same metadata
from db import Base

__all__ = ["Base"]
