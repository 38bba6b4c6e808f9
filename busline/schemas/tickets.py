from pydantic import BaseModel
from typing import Optional

class VerifyTicketIn(BaseModel):
    # The ticket payload as issued (at least the signed fields and the signature)
    ticket: dict
    location: str = ""
    busUsed: str = ""
    notes: str = ""
    manual: bool = False

class VerifyTicketOut(BaseModel):
    result: str
    reason: Optional[str] = None
    reference: Optional[str] = None
    verifiedAt: str
