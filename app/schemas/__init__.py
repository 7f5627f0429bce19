"""
Pydantic request schemas
"""
