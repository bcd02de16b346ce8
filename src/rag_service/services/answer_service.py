"""Answer generation over retrieved chunks, batch and streamed."""

import asyncio
import contextlib
import time
from typing import AsyncIterator, List, Optional, Union

from rag_service.config import Settings, get_settings
from rag_service.models.document import ChunkDocument
from rag_service.models.qa import QAMetadata, QAResult
from rag_service.models.results import (
    GenerationFailure,
    GenerationOutcome,
    GenerationPath,
    GenerationSuccess,
)
from rag_service.services import confidence
from rag_service.services.chain import RetrievalChain
from rag_service.services.llm_service import LLMService
from rag_service.services.pipeline_state import PipelineState
from rag_service.services.prompts import NOT_FOUND_ANSWER, build_manual_prompt
from rag_service.services.retrieval_service import RetrievalService
from rag_service.utils.errors import EmptyCorpusError, GenerationError, NotInitializedError
from rag_service.utils.logging import get_logger, log_stage

logger = get_logger("answer_service")

_END = object()


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def _single(text: str) -> AsyncIterator[str]:
    yield text


class AnswerService:
    """
    Produce answers from retrieved chunks.

    Batch answers go through the retrieval-combine chain and fall back to a
    manual prompt with one plain generation call. Streams use the manual
    prompt.
    """

    def __init__(
        self,
        state: PipelineState,
        retrieval: RetrievalService,
        llm: LLMService,
        settings: Optional[Settings] = None,
    ) -> None:
        self.state = state
        self.retrieval = retrieval
        self.llm = llm
        self.settings = settings or get_settings()

    def rebuild_chain(self) -> RetrievalChain:
        """Bind a fresh chain to the current retriever."""
        if self.state.retriever is None:
            raise NotInitializedError("Vector store not initialized")
        self.state.chain = RetrievalChain(self.state.retriever, self.llm)
        self.state.generation_chain_ready = True
        logger.info("Retrieval chain created")
        return self.state.chain

    async def _via_chain(self, question: str, documents: List[ChunkDocument]) -> GenerationOutcome:
        chain = self.state.chain
        if chain is None:
            return GenerationFailure(
                path=GenerationPath.CHAIN, error=NotInitializedError("Retrieval chain not built")
            )
        try:
            text = await chain.invoke(question, documents)
        except Exception as e:
            return GenerationFailure(path=GenerationPath.CHAIN, error=e)
        return GenerationSuccess(path=GenerationPath.CHAIN, text=text)

    async def _via_manual_prompt(
        self, question: str, documents: List[ChunkDocument]
    ) -> GenerationOutcome:
        try:
            text = await self.llm.generate(build_manual_prompt(question, documents))
        except Exception as e:
            return GenerationFailure(path=GenerationPath.MANUAL, error=e)
        return GenerationSuccess(path=GenerationPath.MANUAL, text=text)

    async def answer(self, question: str) -> QAResult:
        """
        Answer a question.

        Raises:
            NotInitializedError: If the collection is not bound
            RetrievalExhaustedError: If no retrieval tier succeeded
            GenerationError: If both generation paths failed
        """
        logger.info(f"Answering question: {question}")
        start = time.perf_counter()
        try:
            retrieval = await self.retrieval.retrieve(question)
        except EmptyCorpusError:
            return QAResult(
                answer=NOT_FOUND_ANSWER,
                metadata=QAMetadata(retrieval_time_ms=_elapsed_ms(start)),
            )
        retrieval_ms = _elapsed_ms(start)

        documents = retrieval.documents
        if not documents:
            return QAResult(
                answer=NOT_FOUND_ANSWER,
                metadata=QAMetadata(retrieval_time_ms=retrieval_ms),
            )

        generation_start = time.perf_counter()
        outcome = await self._via_chain(question, documents)
        if isinstance(outcome, GenerationFailure):
            logger.warning(f"Retrieval chain failed, generating answer manually: {outcome.error}")
            chain_error = outcome.error
            outcome = await self._via_manual_prompt(question, documents)
            if isinstance(outcome, GenerationFailure):
                raise GenerationError(
                    f"Failed to answer question: {outcome.error}",
                    details={"chain_error": str(chain_error), "manual_error": str(outcome.error)},
                ) from outcome.error
        generation_ms = _elapsed_ms(generation_start)

        log_stage("generation", generation_ms, path=outcome.path.value, chunks=len(documents))
        return QAResult(
            answer=outcome.text,
            sources=documents,
            confidence=confidence.score(question, documents),
            metadata=QAMetadata(
                retrieval_time_ms=retrieval_ms,
                generation_time_ms=generation_ms,
                chunks_used=len(documents),
            ),
        )

    async def answer_stream(self, question: str) -> AsyncIterator[str]:
        """
        Retrieve now and return an iterator over answer fragments.

        Errors from retrieval surface here, before the first fragment.
        Closing the returned iterator cancels generation.
        """
        logger.info(f"Streaming answer for: {question}")
        try:
            retrieval = await self.retrieval.retrieve(question)
        except EmptyCorpusError:
            return _single(NOT_FOUND_ANSWER)
        if not retrieval.documents:
            return _single(NOT_FOUND_ANSWER)

        prompt = build_manual_prompt(question, retrieval.documents)
        return self._stream(prompt)

    async def _produce(self, prompt: str, queue: "asyncio.Queue[Union[str, BaseException, object]]") -> None:
        stream = self.llm.generate_stream(prompt)
        try:
            async for fragment in stream:
                text = fragment if isinstance(fragment, str) else str(fragment)
                if text:
                    await queue.put(text)
        except GenerationError as e:
            await queue.put(e)
        except Exception as e:
            await queue.put(GenerationError(f"Streaming failed: {e}"))
        else:
            await queue.put(_END)
        finally:
            close = getattr(stream, "aclose", None)
            if close is not None:
                await close()

    async def _stream(self, prompt: str) -> AsyncIterator[str]:
        queue: "asyncio.Queue[Union[str, BaseException, object]]" = asyncio.Queue(
            maxsize=self.settings.retrieval.stream_buffer_size
        )
        producer = asyncio.create_task(self._produce(prompt, queue))
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    break
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            if not producer.done():
                producer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await producer
