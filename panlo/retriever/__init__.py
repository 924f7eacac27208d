"""
Panlo Retriever - Multi-Namespace Retrieval & Answer Synthesis

Key Components:
- FilterCompiler: folder/path selections -> vector store predicate
- NamespaceSearcher: one thresholded query against one namespace
- MultiNamespaceRetriever: concurrent fan-out, merge, dedup, rank
- PromptAssembler: precise/general completion requests
- CitationExtractor: answer text + validated source ids
- ChunkReassembler: ordered transcript from stored fragments

Pipeline:
1. Compile folder/path filters for the owner and each shared namespace
2. Embed the question once and query every namespace concurrently
3. Merge the ranked matches and assemble the prompt with conversation memory
4. Complete, then split the answer from its validated citations
"""

from .citations import CitationExtractor, SynthesizedAnswer
from .engine import RetrievalEngine
from .filters import FilterCompiler, QueryFilters, SharedSelector
from .memory import ConversationMemory, normalize_memory
from .prompts import AnswerMode, CompletionRequest, PromptAssembler
from .searcher import MultiNamespaceRetriever, NamespaceSearcher, RetrievalResult, ScoredMatch
from .transcripts import ChunkReassembler, Transcript

__all__ = [
    "CitationExtractor",
    "SynthesizedAnswer",
    "RetrievalEngine",
    "FilterCompiler",
    "QueryFilters",
    "SharedSelector",
    "ConversationMemory",
    "normalize_memory",
    "AnswerMode",
    "CompletionRequest",
    "PromptAssembler",
    "MultiNamespaceRetriever",
    "NamespaceSearcher",
    "RetrievalResult",
    "ScoredMatch",
    "ChunkReassembler",
    "Transcript",
]
