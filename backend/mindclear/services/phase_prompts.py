"""
Thinking-session phases, their system prompts and sampling settings.

Phases run in a fixed forward-only order. Only DUMP has real behaviour; the
remaining phases keep a reserved prompt and sampling profile so the sequence is
complete, but the engine refuses to generate for them.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from mindclear.services.llm_client import SamplingConfig


class Phase(str, Enum):
    DUMP = "DUMP"
    CLARITY = "CLARITY"
    DECISION = "DECISION"
    PLANNING = "PLANNING"
    EXECUTION = "EXECUTION"


PHASE_ORDER: List[Phase] = [Phase.DUMP, Phase.CLARITY, Phase.DECISION, Phase.PLANNING, Phase.EXECUTION]
INITIAL_PHASE = Phase.DUMP

DUMP_PHASE_PROMPT = """You are a calm, grounding presence helping someone offload their thoughts.

YOUR ROLE:
You are NOT a coach. You are NOT an advisor. You are a mirror.
Your only job is to help the person feel heard and understood.

STRICT RULES - FOLLOW EXACTLY:

1. REFLECT emotions and themes you notice in their words
2. NORMALIZE any confusion, overwhelm, or messiness
3. KEEP responses SHORT - 3 to 5 lines maximum
4. SOUND calm, warm, and grounded - never authoritative

FORBIDDEN ACTIONS - NEVER DO THESE:

- DO NOT ask questions
- DO NOT give advice or suggestions
- DO NOT add your own ideas
- DO NOT create lists, bullet points, or structured summaries
- DO NOT suggest next steps or actions
- DO NOT try to solve or fix anything
- DO NOT use phrases like "you should", "try to", "consider", "what if"

IF THE USER ASKS FOR ADVICE:
Gently acknowledge the urge but redirect to expression.
Example: "It makes sense you'd want answers right now. For now, just let it out - there's time for that later."

TONE:
- Warm but not enthusiastic
- Present but not intrusive
- Accepting without judgment
- Like a trusted friend who just listens

RESPONSE FORMAT:
- Plain text only
- No markdown, no formatting
- No emojis
- 3-5 short lines"""

CLARITY_PHASE_PROMPT = "[PHASE 2 - NOT YET IMPLEMENTED]\nThis phase will help name and clarify the core problem."
DECISION_PHASE_PROMPT = "[PHASE 3 - NOT YET IMPLEMENTED]\nThis phase will help commit to or defer a decision."
PLANNING_PHASE_PROMPT = "[PHASE 4 - NOT YET IMPLEMENTED]\nThis phase will create light structure around the decision."
EXECUTION_PHASE_PROMPT = "[PHASE 5 - NOT YET IMPLEMENTED]\nThis phase will support the user during action."

VIOLATION_REMINDER = (
    "REMINDER: Your previous response violated phase rules. DO NOT ask questions. "
    "DO NOT give advice. DO NOT use lists. Keep it to 3-5 lines of plain reflection."
)


@dataclass(frozen=True)
class PhaseDefinition:
    phase: Phase
    system_prompt: str
    sampling: SamplingConfig
    implemented: bool = False


PHASE_DEFINITIONS: Dict[Phase, PhaseDefinition] = {
    Phase.DUMP: PhaseDefinition(
        Phase.DUMP,
        DUMP_PHASE_PROMPT,
        SamplingConfig(temperature=0.4, max_tokens=150, top_p=0.9),
        implemented=True,
    ),
    Phase.CLARITY: PhaseDefinition(Phase.CLARITY, CLARITY_PHASE_PROMPT, SamplingConfig(0.5, 200, 0.9)),
    Phase.DECISION: PhaseDefinition(Phase.DECISION, DECISION_PHASE_PROMPT, SamplingConfig(0.3, 250, 0.85)),
    Phase.PLANNING: PhaseDefinition(Phase.PLANNING, PLANNING_PHASE_PROMPT, SamplingConfig(0.4, 300, 0.9)),
    Phase.EXECUTION: PhaseDefinition(Phase.EXECUTION, EXECUTION_PHASE_PROMPT, SamplingConfig(0.5, 200, 0.9)),
}


def get_phase_definition(phase: Phase | str) -> PhaseDefinition:
    try:
        return PHASE_DEFINITIONS[Phase(phase)]
    except ValueError as exc:
        raise ValueError(f"Unknown phase: {phase}") from exc


def next_phase(phase: Phase | str) -> Optional[Phase]:
    """The phase after ``phase`` or None when it is terminal."""
    index = PHASE_ORDER.index(Phase(phase))
    if index + 1 >= len(PHASE_ORDER):
        return None
    return PHASE_ORDER[index + 1]


def can_advance(phase: Phase | str) -> bool:
    return next_phase(phase) is not None


def build_phase_messages(phase: Phase | str, history: Sequence[Mapping[str, str]]) -> List[Dict[str, str]]:
    """System prompt for the phase followed by the conversation so far."""
    definition = get_phase_definition(phase)
    return [{"role": "system", "content": definition.system_prompt}] + [
        {"role": message["role"], "content": message["content"]} for message in history
    ]
