"""Turn HTTP request queries into parsed command layers."""

from .parser import Parser
from .query import Query, QueryParseStep, bind_query
from .state import LayerParseState, ParseState, compute_alias_defaults
from .steps import DefaultParseStep, ParseStep, StaticParseStep, StopParseStep

__all__ = [
    "DefaultParseStep",
    "LayerParseState",
    "ParseState",
    "ParseStep",
    "Parser",
    "Query",
    "QueryParseStep",
    "StaticParseStep",
    "StopParseStep",
    "bind_query",
    "compute_alias_defaults",
]
