"""Shared retrieval primitive."""

from __future__ import annotations

import logging

from ..core.errors import ExternalCallError, StepflowError, kind_of, safe_message
from ..core.state import PipelineState
from ..providers.protocols import Embedder, VectorStore

logger = logging.getLogger(__name__)


async def retrieve(
    store: VectorStore,
    embedder: Embedder,
    query: str,
    k: int,
) -> list[str]:
    """Embed ``query`` and return the texts of the ``k`` most similar documents.

    Blank documents are dropped; rank order is preserved.

    Raises:
        ExternalCallError: If embedding or the similarity search fails.
    """
    if k <= 0:
        raise ValueError(f"k must be > 0, got {k}")

    try:
        embedding = await embedder.embed(query)
    except StepflowError:
        raise
    except Exception as exc:
        raise ExternalCallError("embedder", exc) from exc

    try:
        hits = await store.get_similar(embedding, k)
    except StepflowError:
        raise
    except Exception as exc:
        raise ExternalCallError("vector-store", exc) from exc

    return [hit.text for hit in hits if hit.text and hit.text.strip()]


def can_retrieve(state: PipelineState) -> bool:
    return state.branch.store is not None and state.embedder is not None


async def retrieve_into(
    state: PipelineState,
    k: int,
    query: str | None = None,
) -> list[str]:
    """Replace ``state.retrieved`` with the top ``k`` passages for ``query``.

    Without a store or embedder nothing happens. A failed search is recorded
    as a ``retrieve:error`` event and leaves ``state.retrieved`` untouched.
    """
    query = query if query is not None else (state.query or state.prompt)
    if not query or not query.strip() or not can_retrieve(state):
        return state.retrieved

    try:
        texts = await retrieve(state.branch.store, state.embedder, query, k)
    except ExternalCallError as exc:
        state.branch.record_ingest(f"retrieve:error:{kind_of(exc)}:{safe_message(exc)}")
        logger.warning("Retrieval failed: %s", exc)
        return state.retrieved

    state.retrieved = texts
    flat_query = query.replace("|", ":").replace("\n", " ")
    state.branch.record_ingest(
        f"retrieve:{k}:{flat_query}", (f"doc:{i}" for i in range(len(texts)))
    )
    state.emit("rag.retrieved", k=k, query=query, count=len(texts))
    return texts
