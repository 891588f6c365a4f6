from apisync.codegen.records.generator import generate_dto, generate_models
from apisync.codegen.records.merger import append_declarations, merge_dto
from apisync.codegen.records.parser import parse_dtos
from apisync.codegen.records.shapes import SchemaShape, classify_schema

__all__ = [
    'generate_dto',
    'generate_models',
    'parse_dtos',
    'merge_dto',
    'append_declarations',
    'classify_schema',
    'SchemaShape',
]
