"""Prompt templates for answer generation."""

from typing import List

from rag_service.models.document import ChunkDocument

CHAIN_PROMPT_TEMPLATE = """
You are a helpful AI assistant. Use the following context to answer the user's question accurately and comprehensively.

Context: {context}

Question: {input}

Instructions:
- Answer based primarily on the provided context
- If the context doesn't contain enough information, clearly state that
- Provide specific details and examples when available
- Answer in detail.

Answer:"""

MANUAL_PROMPT_TEMPLATE = """Based on the following context, please answer the question accurately:

Context: {context}

Question: {question}

Answer:"""

NOT_FOUND_ANSWER = (
    "I couldn't find any relevant documents to answer your question. "
    "Please make sure documents have been uploaded and processed correctly."
)


def join_context(documents: List[ChunkDocument]) -> str:
    return "\n\n".join(doc.content for doc in documents)


def build_chain_prompt(question: str, documents: List[ChunkDocument]) -> str:
    return CHAIN_PROMPT_TEMPLATE.format(context=join_context(documents), input=question)


def build_manual_prompt(question: str, documents: List[ChunkDocument]) -> str:
    return MANUAL_PROMPT_TEMPLATE.format(context=join_context(documents), question=question)
