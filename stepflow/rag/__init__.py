"""Retrieval-augmented generation strategies."""

from .retrieval import retrieve, retrieve_into
from .strategies import (
    DecomposeOptions,
    GenerateOptions,
    MapReduceOptions,
    decompose_aggregate,
    map_reduce,
    retrieve_combine_generate,
)
from .templates import fill_template, parse_sub_questions, partition

__all__ = [
    "retrieve",
    "retrieve_into",
    "fill_template",
    "parse_sub_questions",
    "partition",
    "GenerateOptions",
    "MapReduceOptions",
    "DecomposeOptions",
    "retrieve_combine_generate",
    "map_reduce",
    "decompose_aggregate",
]
