"""RAG strategy tokens."""

from __future__ import annotations

from ..core.registry import Step, token
from ..core.state import PipelineState
from ..rag.strategies import (
    DecomposeOptions,
    GenerateOptions,
    MapReduceOptions,
    decompose_aggregate,
    map_reduce,
    retrieve_combine_generate,
)


@token("RAG", "UseRAG", "RetrieveCombineGenerate")
def rag(args: str | None = None) -> Step:
    """Usage: ``RAG('k=8;sep=\\n---\\n;template=...')``"""
    options = GenerateOptions.from_args(args)

    async def step(s: PipelineState) -> PipelineState:
        return await retrieve_combine_generate(s, options)

    return step


@token("DivideAndConquerRAG", "DCRAG", "RAGMapReduce")
def divide_and_conquer_rag(args: str | None = None) -> Step:
    """Usage: ``DCRAG('k=24;group=6;sep=\\n---\\n;template=...;final=...;stream')``"""
    options = MapReduceOptions.from_args(args)

    async def step(s: PipelineState) -> PipelineState:
        return await map_reduce(s, options)

    return step


@token("DecomposeAndAggregateRAG", "DARAG", "SubQAggregate")
def decompose_and_aggregate_rag(args: str | None = None) -> Step:
    """Usage: ``DARAG('subs=4;per=6;k=24;stream;decompose=...;template=...;final=...')``"""
    options = DecomposeOptions.from_args(args)

    async def step(s: PipelineState) -> PipelineState:
        return await decompose_aggregate(s, options)

    return step
