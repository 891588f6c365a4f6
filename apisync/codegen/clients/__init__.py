from apisync.codegen.clients.generator import generate_api
from apisync.codegen.clients.merger import merge_api, merge_endpoints
from apisync.codegen.clients.parser import parse_api

__all__ = [
    'generate_api',
    'parse_api',
    'merge_api',
    'merge_endpoints',
]
