"""STEP parsing: scanner, tokenizer, lazy decoder, resolver and model passes."""

from aecmesh.parser.decoder import EntityDecoder
from aecmesh.parser.model import ParsedModel, StepParser, parse, parse_file, parse_with_progress
from aecmesh.parser.properties import PropertyIndex, build_property_index
from aecmesh.parser.resolver import EntityResolver
from aecmesh.parser.scanner import EntityScanner, parse_header
from aecmesh.parser.spatial import SpatialTree, build_spatial_tree
from aecmesh.parser.tokenizer import Token, TokenKind, tokenize

__all__ = [
    "EntityDecoder",
    "EntityResolver",
    "EntityScanner",
    "ParsedModel",
    "PropertyIndex",
    "SpatialTree",
    "StepParser",
    "Token",
    "TokenKind",
    "build_property_index",
    "build_spatial_tree",
    "parse",
    "parse_file",
    "parse_header",
    "parse_with_progress",
    "tokenize",
]
