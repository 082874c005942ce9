# pathway/intake/state.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from pathway.intake.stages import IntakePhase, SessionStatus
from pathway.intake.script import IntakeScript


@dataclass
class SessionState:
    """
    In-memory view of one pass through the intake script.

    Built fresh on every turn (from the session row, or by replaying the
    interaction log) and thrown away once the response has been produced.
    """

    active: bool = False
    steps_completed: List[str] = field(default_factory=list)
    last_prompt: str = ""
    emotional_tone_history: List[str] = field(default_factory=list)
    extracted_fields: Dict[str, str] = field(default_factory=dict)
    cumulative_score: int = 0

    # Optimistic concurrency: version of the session row this state was read from.
    version: int = 0
    script_version: Optional[str] = None

    def status(self) -> SessionStatus:
        if not self.steps_completed:
            return SessionStatus.NOT_STARTED
        return SessionStatus.IN_PHASE if self.active else SessionStatus.COMPLETED

    def current_step_key(self) -> Optional[str]:
        return self.steps_completed[-1] if self.steps_completed else None

    def current_phase(self, script: IntakeScript) -> Optional[IntakePhase]:
        key = self.current_step_key()
        return script.phase_of(key) if key is not None else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # Stored as columns on the session row, not inside the JSON blob.
        data.pop("version")
        data.pop("script_version")
        return data

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        version: int = 0,
        script_version: Optional[str] = None,
    ) -> "SessionState":
        return cls(
            active=bool(data.get("active", False)),
            steps_completed=list(data.get("steps_completed", [])),
            last_prompt=data.get("last_prompt", ""),
            emotional_tone_history=list(data.get("emotional_tone_history", [])),
            extracted_fields=dict(data.get("extracted_fields", {})),
            cumulative_score=int(data.get("cumulative_score", 0)),
            version=version,
            script_version=script_version,
        )
