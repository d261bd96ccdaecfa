"""Prompt → LLM → parser orchestration for decision generation."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from mindclear.core.config import settings
from mindclear.core.errors import PROVIDER_EMPTY_RESPONSE, ProviderError, ResponseSchemaError
from mindclear.observability.tracing import annotate, trace
from mindclear.services import prompt_builder
from mindclear.services.llm_client import LLMClient, SamplingConfig
from mindclear.services.response_parser import Decision, parse_decision_response

logger = logging.getLogger(__name__)

HEALTH_PROBE_MESSAGES = [{"role": "user", "content": 'Say "ok" in JSON: {"status": "ok"}'}]
HEALTH_PROBE_SAMPLING = SamplingConfig(temperature=0.0, max_tokens=20)


class DecisionEngine:
    """Builds the matching prompt, calls the model in JSON mode and parses the reply."""

    def __init__(self, llm: LLMClient, sampling: Optional[SamplingConfig] = None):
        self.llm = llm
        self.sampling = sampling or SamplingConfig(
            temperature=settings.ai_temperature,
            max_tokens=settings.ai_max_tokens,
        )

    def generate(self, user_input: str, context: Optional[str] = None) -> Decision:
        messages = prompt_builder.build_decision_prompt(user_input, context)
        return self._run("decision.generate", messages, {"has_context": bool(context), "input_length": len(user_input)})

    def refine(self, original_decision: Dict[str, Any], feedback: str) -> Decision:
        messages = prompt_builder.build_refinement_prompt(original_decision, feedback)
        return self._run("decision.refine", messages, {"feedback_length": len(feedback)})

    def clarify(self, original_input: str, clarification: str) -> Decision:
        messages = prompt_builder.build_clarification_prompt(original_input, clarification)
        return self._run("decision.clarify", messages, {"clarification_length": len(clarification)})

    def health_check(self) -> Dict[str, Any]:
        """Minimal probe call; never raises."""
        try:
            self.llm.complete(HEALTH_PROBE_MESSAGES, HEALTH_PROBE_SAMPLING, json_mode=True)
        except Exception as exc:
            logger.warning("AI health probe failed: %s", exc)
            return {"status": "error", "error": str(exc)}
        return {"status": "ok", "model": self.llm.model}

    def _run(self, name: str, messages: List[Dict[str, str]], metadata: Dict[str, Any]) -> Decision:
        with trace(name, metadata=metadata) as span:
            raw = self.llm.complete(messages, self.sampling, json_mode=True)
            if not raw:
                raise ProviderError(PROVIDER_EMPTY_RESPONSE, "Empty response from AI provider")
            try:
                decision = parse_decision_response(raw)
            except ResponseSchemaError as exc:
                logger.warning("%s: unusable AI reply (%s): %s", name, exc.code, "; ".join(exc.errors))
                raise
            annotate(span, **metadata, task_count=len(decision.tasks))
        return decision
