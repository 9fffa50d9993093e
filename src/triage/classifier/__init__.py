"""Language-model label classification.

This module recommends labels for GitHub issues:
- Prompt rendering for the triager model
- The triager agent (LangChain structured output)
- The prompt-injection guard applied to issue text
- Classifier models validated against the repository label catalog
"""

from src.triage.classifier.agent import (
    ClassificationError,
    LangChainTriagerAgent,
    TriagerAgent,
)
from src.triage.classifier.guard import (
    AllowAllGuard,
    InjectionGuard,
    LLMInjectionGuard,
    PromptInjectionError,
)
from src.triage.classifier.models import ClassifyInput, ClassifyOutput, GuardVerdict
from src.triage.classifier.prompts import build_system_prompt, build_triage_prompt

__all__ = [
    "AllowAllGuard",
    "build_system_prompt",
    "build_triage_prompt",
    "ClassificationError",
    "ClassifyInput",
    "ClassifyOutput",
    "GuardVerdict",
    "InjectionGuard",
    "LangChainTriagerAgent",
    "LLMInjectionGuard",
    "PromptInjectionError",
    "TriagerAgent",
]
