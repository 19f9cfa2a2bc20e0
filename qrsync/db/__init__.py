from .base import Base
from .models import transfer_session

__all__ = ["Base", "transfer_session"]
