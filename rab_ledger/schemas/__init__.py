"""Pydantic request/response schemas, one explicit response model per operation."""
