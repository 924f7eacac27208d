"""
Prompt Assembler

Builds the single-turn completion request for an answer: a system message
carrying identity, language and citation rules, and a user message carrying
the retrieved context, the conversation memory, the question and the
mode-specific instructions.

Two answer modes:
- precise: extract only what the documents say, surface contradictions,
  flag near-duplicate files
- general: conversation history first, then documents, then general knowledge
"""

from dataclasses import dataclass
from enum import Enum
from typing import List

from ..common.errors import ValidationError
from .memory import ConversationMemory
from .searcher import RetrievalResult, ScoredMatch

NO_CONTEXT_SENTINEL = "No relevant information found in the database."
CITATION_FORMAT = "**Sources**: id-1, id-2"


class AnswerMode(str, Enum):
    """How strictly the answer must stick to the retrieved documents"""
    PRECISE = "precise"
    GENERAL = "general"

    @classmethod
    def parse(cls, value) -> "AnswerMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValidationError(
                f"answerMode must be one of {[m.value for m in cls]}, got {value!r}",
                ["answerMode"],
            ) from None


@dataclass(frozen=True)
class CompletionRequest:
    """A (system, user) message pair for one completion call"""
    system: str
    user: str

    def as_messages(self) -> List[dict]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


SYSTEM_PROMPT = f"""You are Panlo, a desktop assistant that helps people find and understand the content of their own files. If anyone asks for your name or who you are, reply "I'm Panlo." If anyone asks what you do, explain that you read their files and file attributes and answer questions about them.

Requests often refer to earlier content without naming it, in any language: "translate it to Japanese", "summarize that", "what does that mean?", "翻譯成日文", "要約して", "Resume esto". In those cases the request is about your previous answer, so use the conversation history to resolve what is meant.

Always answer in the same language as the user's query.

Citations: when you use any document from the context, end your reply with one line in exactly this format:
{CITATION_FORMAT}
Use the source IDs exactly as shown after "### Source:" in the context. Write the word "Sources" in English whatever language you answer in; never translate it. Do not put brackets or quotes around the IDs, and do not add any explanation on that line."""


PRECISE_INSTRUCTIONS = f"""PRECISE MODE: answer only from the documents.

1. Read every source completely. Do not stop at the first section that looks related.
2. Extract the content that directly answers the query: the actual procedure, wording, definition or list the user asked for, not background about when or why it is used.
3. Quote that content verbatim and completely, keeping its punctuation and formatting. Combine passages if the answer spans several sources.
4. Do not add anything the documents do not say. If the documents do not contain the answer, say so and ask the user for more detail.
5. If sources contradict each other, point out the contradiction and cite both sides.
6. If several cited sources look like copies of the same file (near-identical names or content), mention it and ask whether the user wants to remove the duplicates.
7. Cite the sources you used: {CITATION_FORMAT}"""


GENERAL_INSTRUCTIONS = f"""GENERAL MODE: answer helpfully, in this order of priority.

1. Conversation history: if the query follows up on earlier turns ("translate it", "summarize that"), work from the previous answer.
2. Document context: use the retrieved documents whenever they are relevant.
3. General knowledge: fill in from your own knowledge when history and documents do not cover the query.
4. If neither the documents nor the history let you answer, ask the user for more information.
5. If you used any documents, cite them: {CITATION_FORMAT}"""


FOLLOW_UP_NOTE = "User has been asking follow-up questions. Maintain consistency with previous responses."


def render_match(match: ScoredMatch) -> str:
    """Render one match as a context block"""
    meta = match.metadata
    lines = [
        f"### Source: {match.id}",
        f"Filename: {meta.get('filename') or 'Unknown'}",
        f"File Type: {meta.get('fileType') or 'Unknown'}",
        f"Folder Name: {meta.get('folderName') or 'Unknown'}",
    ]
    if match.shared_from:
        lines.append(f"Shared From: {match.shared_from}")
    lines.append(f"Score: {match.score:.2f}")
    lines.append(f"Content: {match.text}")
    return "\n".join(lines)


def render_context(result: RetrievalResult) -> str:
    if result.is_empty:
        return NO_CONTEXT_SENTINEL
    return "\n\n".join(render_match(m) for m in result)


def render_memory(memory: ConversationMemory) -> str:
    """Render memory as User/AI/Cited Sources triples plus conversation hints"""
    parts = [
        f"User: {i.user}\nAI: {i.ai}\nCited Sources: {', '.join(i.cited_sources)}"
        for i in memory.interactions
    ]
    if memory.recent_topics:
        parts.append(f"Recent conversation topics: {', '.join(memory.recent_topics)}")
    if memory.has_follow_ups:
        parts.append(FOLLOW_UP_NOTE)
    return "\n".join(parts)


class PromptAssembler:
    """Assembles completion requests for both answer modes."""

    def __init__(self, system_prompt: str = SYSTEM_PROMPT):
        self._system_prompt = system_prompt

    def assemble(
        self,
        result: RetrievalResult,
        memory: ConversationMemory,
        mode: AnswerMode,
        query: str,
    ) -> CompletionRequest:
        instructions = PRECISE_INSTRUCTIONS if AnswerMode.parse(mode) is AnswerMode.PRECISE else GENERAL_INSTRUCTIONS
        memory_text = render_memory(memory) or "(no previous conversation)"

        user = (
            f"Here is the context from the user's documents:\n{render_context(result)}\n\n"
            f"Here is the previous conversation:\n{memory_text}\n\n"
            f"User query: {query}\n\n"
            f"{instructions}"
        )
        return CompletionRequest(system=self._system_prompt, user=user)
