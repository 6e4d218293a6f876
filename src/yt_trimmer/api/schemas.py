from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class TrimRequest(BaseModel):
    url: str
    start: str
    end: str
    filename: Optional[str] = None
    format: Optional[str] = "mp4"
    quality: Optional[Union[str, int]] = None


class MultiTrimRequest(BaseModel):
    url: str
    intervals: List[List[str]] = Field(default_factory=list)
    filename: Optional[str] = None
    format: Optional[str] = "mp4"
    quality: Optional[Union[str, int]] = None
    concat: bool = False


class TaskAcceptedResponse(BaseModel):
    success: bool = True
    taskId: str
    message: str
