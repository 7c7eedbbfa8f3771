"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from portfolio_assistant.config import AssistantConfig
from portfolio_assistant.domain.chat import ChatSession
from portfolio_assistant.domain.lifecycle import SuggestionLifecycleManager
from portfolio_assistant.domain.preview import ExtractionPipeline


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_config(request: Request) -> AssistantConfig:
    return request.app.state.config


def get_manager(request: Request) -> SuggestionLifecycleManager:
    """Provide the process-wide suggestion lifecycle manager"""
    return request.app.state.manager


def get_chat_session(request: Request) -> ChatSession:
    return request.app.state.chat


def get_pipeline(request: Request) -> ExtractionPipeline:
    return request.app.state.pipeline
