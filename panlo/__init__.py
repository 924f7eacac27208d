"""
Panlo

Document question-answering over a namespaced vector index.

Philosophy:
- Every account owns one namespace; shared content is read from the owner's namespace
- Retrieval fans out across namespaces and never fails because one branch did
- Answers cite the fragments they were built from, and citations are validated
- Long documents are stored as ordinal-suffixed fragments and reassembled on demand

Usage:
    from panlo.common import load_config, build_context
    from panlo.retriever import RetrievalEngine, FilterCompiler, CitationExtractor
    from panlo.server.app import app
"""

__version__ = "0.1.0"
