"""Generation prompt assembly."""

from dataclasses import dataclass
from typing import Sequence

from .index import Chunk

UNKNOWN_SOURCE = "(unknown)"


@dataclass(frozen=True)
class IntentRule:
    """Guidance line added when any trigger is a substring of the lower-cased question."""

    name: str
    triggers: tuple[str, ...]
    guidance: str

    def applies(self, question_lower: str) -> bool:
        return any(trigger in question_lower for trigger in self.triggers)


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(
        "wants_list",
        ("list", "which programs", "what programs"),
        "- If the question asks for a list, provide a complete bullet list using the exact titles/names found in CONTEXT.",
    ),
    IntentRule(
        "wants_deadline",
        ("deadline", "last date", "closing date"),
        "- Give exact dates first (with semester labels if present), and specify the portal "
        "(e.g., uni-assist vs. university) if stated.",
    ),
    IntentRule(
        "wants_contact",
        ("who", "contact", "incharge", "in charge"),
        "- Include full contact details if present: name, role, office/room, email/phone.",
    ),
    IntentRule(
        "wants_requirements",
        ("requirement", "eligibility", "admission", "uni-assist", "aps"),
        "- If requirements are present, include a clear checklist (degree, language level, uni-assist/APS, documents).",
    ),
)

GLOBAL_RULES = """- Use ONLY the CONTEXT. Do NOT invent details.
- Quote exact numbers, dates, names and program titles.
- Prefer concise paragraphs and bullet points. Use short headings if helpful.
- Include short quotes only when needed to preserve exact wording.
- End with one source line:  Source: <URL>."""

PROMPT_TEMPLATE = """You are an expert university admissions/curriculum assistant.

{global_rules}

Additional guidance:
{guidance}

QUESTION:
{question}

CONTEXT:
{context}

Write a comprehensive, precise answer strictly from the CONTEXT. Be complete (not a 3-point summary). \
Use clear paragraphs and bullets where helpful. End with:
Source: {primary}
"""


def intent_flags(question: str) -> dict[str, bool]:
    """Evaluate every intent rule against the question."""
    question_lower = question.lower()
    return {rule.name: rule.applies(question_lower) for rule in INTENT_RULES}


def format_context(ranked: Sequence[tuple[Chunk, float]]) -> str:
    return "".join(f"SOURCE: {chunk.source_id}\n{chunk.text}\n\n" for chunk, _ in ranked)


def build_prompt(question: str, ranked: Sequence[tuple[Chunk, float]], primary_source: str) -> str:
    """Assemble the generation prompt from ranked chunks and question intent.

    Args:
        question: User question
        ranked: Ranked (chunk, score) pairs, best first
        primary_source: Source the answer should cite ("" if unknown)

    Returns:
        Prompt text
    """
    question_lower = question.lower()
    guidance = "\n".join(rule.guidance for rule in INTENT_RULES if rule.applies(question_lower))

    return PROMPT_TEMPLATE.format(
        global_rules=GLOBAL_RULES,
        guidance=guidance or "(none)",
        question=question,
        context=format_context(ranked),
        primary=primary_source or UNKNOWN_SOURCE,
    )
