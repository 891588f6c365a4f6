"""Source generation, parsing and merging for models and clients.

Main Components:
    - records: Pydantic model declarations from schemas, and back
    - clients: Async httpx clients from endpoints, and back
    - paths: Path item flattening and grouping
    - Codegen: Orchestrates a configured document into files (``apisync.codegen.codegen``)
"""
