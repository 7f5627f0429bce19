"""
Common Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel


class IdPayload(BaseModel):
    """Body carrying only a row id"""
    id: Optional[str] = None
