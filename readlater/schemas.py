from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class StatusResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"


class ReadLaterItemOut(BaseModel):
    url: str
    successfully_retrieved: bool
    title: Optional[str] = None
    byline: Optional[str] = None
    content: Optional[str] = None
    content_type: Optional[str] = None
    retrieval_time: Optional[datetime] = None


class ReadLaterFeedOut(BaseModel):
    feed_id: str
    items: List[ReadLaterItemOut]
