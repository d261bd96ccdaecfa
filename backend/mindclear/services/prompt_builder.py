"""Message assembly for the decision flows (fresh, refinement, clarification)."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from mindclear.services.response_parser import ALIGNMENT_SUFFIX

ChatMessage = Dict[str, str]

SYSTEM_PROMPT = (
    "You are a calm, unbiased decision clarity assistant.\n\n"
    "Your job is NOT to motivate.\n"
    "Your job is NOT to explore many options.\n"
    "Your job is to reduce confusion and suggest a clear next direction.\n\n"
    "IMPORTANT BEHAVIOR RULES:\n"
    "- Do not overwhelm the user\n"
    "- Do not provide multiple competing paths\n"
    "- Do not use hype or emotional language\n"
    "- Be honest about uncertainty\n"
    "- If the situation is unclear, say so\n\n"
    "OUTPUT RULES:\n"
    "- Respond ONLY in valid JSON\n"
    "- Follow the exact schema provided\n"
    "- No markdown\n"
    "- No extra text\n\n"
    "DECISION FRAMEWORK (follow this internally):\n"
    "1. Identify the core tension or confusion\n"
    "2. Decide what matters most RIGHT NOW\n"
    "3. Choose ONE reasonable direction\n"
    "4. Translate it into simple, concrete actions\n\n"
    "JSON SCHEMA (must match exactly):\n"
    "{\n"
    '  "decision": "One clear direction stated simply",\n'
    '  "reasoning": "Why this direction makes sense right now (short, calm, factual)",\n'
    '  "tasks": [\n'
    '    { "title": "Specific action", "priority": 1 },\n'
    '    { "title": "Specific action", "priority": 2 }\n'
    "  ],\n"
    f'  "alignment_check": "{ALIGNMENT_SUFFIX}"\n'
    "}\n\n"
    "FINAL CHECK BEFORE RESPONDING:\n"
    "- Is this the simplest helpful answer?\n"
    "- Would a thoughtful human say this?\n"
    "- Does this reduce mental load?"
)

CONTEXT_TEMPLATE = "KNOWN CONTEXT (if any):\n{context}\n\n---"
USER_INPUT_TEMPLATE = "USER INPUT:\n{user_input}"

CLARIFICATION_PLACEHOLDER = {
    "decision": "I need more clarity before suggesting a direction.",
    "reasoning": "The input contains ambiguity that could lead to a misaligned recommendation.",
    "tasks": [],
    "alignment_check": "Can you clarify the core tension you are facing?",
}


def build_decision_prompt(user_input: str, context: Optional[str] = None) -> List[ChatMessage]:
    messages: List[ChatMessage] = [{"role": "system", "content": SYSTEM_PROMPT}]
    if context:
        messages.append({"role": "system", "content": CONTEXT_TEMPLATE.format(context=context)})
    messages.append({"role": "user", "content": USER_INPUT_TEMPLATE.format(user_input=user_input)})
    return messages


def build_refinement_prompt(prior_decision: Dict[str, Any], feedback: str) -> List[ChatMessage]:
    """Embed the previous direction and the user's pushback in a single user turn."""
    tasks = [
        {"title": task["title"], "priority": task["priority"]}
        for task in _as_task_dicts(prior_decision.get("tasks") or [])
    ]
    content = (
        "PREVIOUS DIRECTION:\n"
        f"Decision: \"{prior_decision.get('decision', '')}\"\n"
        f"Reasoning: \"{prior_decision.get('reasoning', '')}\"\n"
        f"Tasks: {json.dumps(tasks)}\n\n"
        "USER FEEDBACK:\n"
        f"{feedback}\n\n"
        "Refine the direction based on this feedback. Respond in the required JSON format."
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


def build_clarification_prompt(original_input: str, clarification: str) -> List[ChatMessage]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_INPUT_TEMPLATE.format(user_input=original_input)},
        {"role": "assistant", "content": json.dumps(CLARIFICATION_PLACEHOLDER)},
        {
            "role": "user",
            "content": (
                f"CLARIFICATION:\n{clarification}\n\n"
                "Now provide the decision in the required JSON format."
            ),
        },
    ]


def _as_task_dicts(tasks: Sequence[Any]) -> List[Dict[str, Any]]:
    # Accept ORM rows, pydantic models or plain dicts.
    result: List[Dict[str, Any]] = []
    for task in tasks:
        if isinstance(task, dict):
            result.append({"title": task.get("title"), "priority": task.get("priority")})
        else:
            result.append({"title": getattr(task, "title", None), "priority": getattr(task, "priority", None)})
    return result
