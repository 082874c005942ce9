# pathway/api/schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TurnRequest(BaseModel):
    user_id: str
    message: str = ""


class TurnResponse(BaseModel):
    response_text: str
    is_complete: bool
    points_awarded: int


class SessionStateResponse(BaseModel):
    user_id: str
    status: str
    active: bool
    steps_completed: List[str]
    current_step: Optional[str]
    current_phase: Optional[str]
    last_prompt: str
    cumulative_score: int


class ScoreResponse(BaseModel):
    user_id: str
    total: int


class TriggerEventSchema(BaseModel):
    event_type: str
    priority: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class ActivityGapResponse(BaseModel):
    user_id: str
    events: List[TriggerEventSchema]


class ChatRequest(BaseModel):
    user_id: str
    message: str


class ChatResponse(BaseModel):
    response_text: str


class PreferencesResponse(BaseModel):
    user_id: str
    preferences: Dict[str, str]


class ScoreBreakdownResponse(BaseModel):
    user_id: str
    total: int
    by_source: Dict[str, int]
    by_category: Dict[str, int]


class ReflectionPromptsResponse(BaseModel):
    domain: str
    prompts: List[str]
    purpose: str


class ReflectionRequest(BaseModel):
    user_id: str
    domain: str
    response: str
    action_step: Optional[str] = None


class ReflectionResponse(BaseModel):
    domain: str
    emotional_tone: str
    points_awarded: int
    milestones: List[int] = Field(default_factory=list)
