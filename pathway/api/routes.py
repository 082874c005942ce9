# pathway/api/routes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pathway.scoring.reflections import domain_prompts, find_domain
from pathway.services.container import Services, get_services
from .schemas import (
    ActivityGapResponse,
    ChatRequest,
    ChatResponse,
    PreferencesResponse,
    ReflectionPromptsResponse,
    ReflectionRequest,
    ReflectionResponse,
    ScoreBreakdownResponse,
    ScoreResponse,
    SessionStateResponse,
    TriggerEventSchema,
    TurnRequest,
    TurnResponse,
)

router = APIRouter()


@router.post("/intake/turn", response_model=TurnResponse)
def intake_turn(
    payload: TurnRequest,
    services: Services = Depends(get_services),
) -> TurnResponse:
    """
    Feed one utterance into the intake. The session is found from the
    user's history; there is nothing to start explicitly.
    """
    result = services.session.process_turn(payload.user_id, payload.message)
    return TurnResponse(
        response_text=result.response_text,
        is_complete=result.is_complete,
        points_awarded=result.points_awarded,
    )


@router.get("/intake/{user_id}/state", response_model=SessionStateResponse)
def intake_state(
    user_id: str,
    services: Services = Depends(get_services),
) -> SessionStateResponse:
    state = services.session.load_state(user_id)
    script = services.session.script
    phase = state.current_phase(script)
    return SessionStateResponse(
        user_id=user_id,
        status=state.status().value,
        active=state.active,
        steps_completed=state.steps_completed,
        current_step=state.current_step_key(),
        current_phase=phase.value if phase is not None else None,
        last_prompt=state.last_prompt,
        cumulative_score=state.cumulative_score,
    )


@router.get("/score/{user_id}", response_model=ScoreResponse)
def score_total(
    user_id: str,
    services: Services = Depends(get_services),
) -> ScoreResponse:
    return ScoreResponse(user_id=user_id, total=services.ledger.total(user_id))


@router.get("/score/{user_id}/breakdown", response_model=ScoreBreakdownResponse)
def score_breakdown(
    user_id: str,
    services: Services = Depends(get_services),
) -> ScoreBreakdownResponse:
    summary = services.ledger.breakdown(user_id)
    return ScoreBreakdownResponse(
        user_id=user_id,
        total=summary.total,
        by_source=summary.by_source,
        by_category=summary.by_category,
    )


@router.get("/reflection/prompts/{domain}", response_model=ReflectionPromptsResponse)
def reflection_prompts(domain: str) -> ReflectionPromptsResponse:
    known = find_domain(domain)
    title = known.title if known is not None else domain
    return ReflectionPromptsResponse(
        domain=title,
        prompts=list(domain_prompts(domain)),
        purpose=(
            known.purpose if known is not None
            else f"Reflect on {title.lower()} progress and needs"
        ),
    )


@router.post("/reflection/submit", response_model=ReflectionResponse)
def submit_reflection(
    payload: ReflectionRequest,
    services: Services = Depends(get_services),
) -> ReflectionResponse:
    try:
        result = services.reflections.submit(
            payload.user_id,
            payload.domain,
            payload.response,
            action_step=payload.action_step,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ReflectionResponse(
        domain=result.domain,
        emotional_tone=result.emotional_tone,
        points_awarded=result.points_awarded,
        milestones=result.milestones,
    )


@router.post("/triggers/activity-gaps/{user_id}", response_model=ActivityGapResponse)
def activity_gaps(
    user_id: str,
    services: Services = Depends(get_services),
) -> ActivityGapResponse:
    """
    Periodic sweep hook: meant to be called by a scheduler, not by the chat UI.
    """
    events = services.detector.check_activity_gaps(user_id)
    for event in events:
        services.dispatcher.submit(event)
    return ActivityGapResponse(
        user_id=user_id,
        events=[
            TriggerEventSchema(
                event_type=e.event_type.value,
                priority=e.priority.value,
                payload=e.payload,
            )
            for e in events
        ],
    )


@router.post("/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    services: Services = Depends(get_services),
) -> ChatResponse:
    return ChatResponse(response_text=services.chat.reply(payload.user_id, payload.message))


@router.get("/preferences/{user_id}", response_model=PreferencesResponse)
def preferences(
    user_id: str,
    services: Services = Depends(get_services),
) -> PreferencesResponse:
    return PreferencesResponse(
        user_id=user_id,
        preferences=services.preferences.get(user_id),
    )
