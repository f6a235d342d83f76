"""API routes for the self-help knowledge base."""
from __future__ import annotations

from fastapi import APIRouter, Query

from app.services.knowledge import knowledge_retriever


router = APIRouter(prefix="/knowledge", tags=["knowledge"])


@router.get("")
def list_articles():
    return {"items": knowledge_retriever.articles()}


@router.get("/search")
def search_articles(q: str = Query(..., min_length=1)):
    return {"query": q, "items": knowledge_retriever.search(q)}
