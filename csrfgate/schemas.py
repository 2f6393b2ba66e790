from pydantic import BaseModel


class StatusResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class CSRFStateOut(BaseModel):
    enabled: bool
    initialized: bool
    header_name: str
    session_name: str
    session_key: str
    store_available: bool
