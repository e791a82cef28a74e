"""Pydantic schemas for bodies the edge produces itself."""
