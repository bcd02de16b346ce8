"""Retrieval-combine chain: stuff retrieved chunks into the chain prompt."""

from typing import List, Optional

from rag_service.models.document import ChunkDocument
from rag_service.services.llm_service import LLMService
from rag_service.services.prompts import build_chain_prompt
from rag_service.services.vector_store import VectorStoreRetriever


class RetrievalChain:
    """Answers a question from chunks, retrieving them itself when none are given."""

    def __init__(self, retriever: VectorStoreRetriever, llm: LLMService) -> None:
        self.retriever = retriever
        self.llm = llm

    async def invoke(self, question: str, documents: Optional[List[ChunkDocument]] = None) -> str:
        if documents is None:
            documents = await self.retriever.invoke(question)
        return await self.llm.generate(build_chain_prompt(question, documents))
