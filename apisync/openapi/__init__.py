"""Conversion between OpenAPI documents and the model, and a registry of loaded documents."""
