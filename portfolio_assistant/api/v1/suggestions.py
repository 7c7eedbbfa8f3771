"""Suggestion listing, confirmation and decline"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from portfolio_assistant.api.dependencies import get_config, get_manager, get_request_id
from portfolio_assistant.api.v1.schemas import (
    ConfirmRequest,
    ConfirmResponse,
    DeclineAllResponse,
    DeclineResponse,
    ImportResultSchema,
    SuggestionSchema,
    SuggestionsResponse,
)
from portfolio_assistant.config import AssistantConfig
from portfolio_assistant.domain.chat import render_suggestion
from portfolio_assistant.domain.exceptions import (
    BackendCommandError,
    InvalidStatusTransitionError,
    MalformedPayloadError,
    MissingPortfolioError,
    SuggestionBusyError,
    SuggestionNotFoundError,
    SuggestionStoreError,
)
from portfolio_assistant.domain.executor import ImportSelection
from portfolio_assistant.domain.lifecycle import SuggestionLifecycleManager, TransitionOutcome
from portfolio_assistant.domain.models import ExtractedTransaction, Suggestion
from portfolio_assistant.infrastructure.observability.logging import log_execution, log_transition
from portfolio_assistant.infrastructure.observability.metrics import (
    record_diagnostics,
    record_execution,
    record_transition,
)

router = APIRouter()


def to_suggestion_schema(
    suggestion: Suggestion, manager: SuggestionLifecycleManager, config: AssistantConfig
) -> SuggestionSchema:
    view = render_suggestion(suggestion, manager.is_executing(suggestion), config.base_currency)
    return SuggestionSchema(
        id=suggestion.id,
        handle=suggestion.handle,
        conversation_id=suggestion.conversation_id,
        message_id=suggestion.message_id,
        action_type=suggestion.action_type,
        description=suggestion.description,
        payload=suggestion.payload,
        status=suggestion.status.value,
        renderable=view.renderable,
        executing=view.executing,
        transaction_count=view.transaction_count,
        error=view.error,
    )


def _record_transition(request_id: str, outcome: TransitionOutcome) -> None:
    suggestion = outcome.suggestion
    record_transition(suggestion.action_type, suggestion.status.value)
    log_transition(
        request_id,
        suggestion.id,
        suggestion.conversation_id,
        suggestion.action_type,
        suggestion.status.value,
        outcome.status_persisted,
    )


def _store_unavailable(request_id: str, e: SuggestionStoreError) -> HTTPException:
    logging.error(f"Suggestion store error: {e}", extra={"request_id": request_id})
    return HTTPException(status_code=503, detail="Suggestion store unavailable")


async def _find(manager: SuggestionLifecycleManager, suggestion_id: int, request_id: str) -> Suggestion:
    try:
        return await manager.find(suggestion_id)
    except SuggestionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SuggestionStoreError as e:
        raise _store_unavailable(request_id, e)


def _find_by_handle(manager: SuggestionLifecycleManager, handle: str) -> Suggestion:
    try:
        return manager.find_by_handle(handle)
    except SuggestionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/conversations/{conversation_id}/suggestions", response_model=SuggestionsResponse)
async def list_suggestions(
    conversation_id: int,
    request: Request,
    manager: SuggestionLifecycleManager = Depends(get_manager),
    config: AssistantConfig = Depends(get_config),
):
    """Current suggestion set; malformed payloads are flagged, not dropped"""
    try:
        suggestions = await manager.load(conversation_id)
    except SuggestionStoreError as e:
        raise _store_unavailable(get_request_id(request), e)
    return SuggestionsResponse(
        conversation_id=conversation_id,
        suggestions=[to_suggestion_schema(s, manager, config) for s in suggestions],
    )


async def _confirm(
    suggestion: Suggestion,
    body: Optional[ConfirmRequest],
    request_id: str,
    manager: SuggestionLifecycleManager,
    config: AssistantConfig,
) -> ConfirmResponse:
    """
    Execute a pending suggestion exactly once.

    Flow:
    1. Reject terminal or in-flight suggestions (409)
    2. Dispatch the single backend mutation for its action kind
    3. Log the result to the chat, then persist `confirmed`

    A backend failure leaves the suggestion pending (502).
    """
    start_time = time.time()

    selection = None
    if body is not None:
        selection = ImportSelection(
            transactions=(
                [ExtractedTransaction(**t.model_dump()) for t in body.transactions]
                if body.transactions is not None
                else None
            ),
            portfolio_id=body.portfolio_id,
        )

    try:
        outcome = await manager.confirm(suggestion, selection)

    except (InvalidStatusTransitionError, SuggestionBusyError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    except (MalformedPayloadError, MissingPortfolioError) as e:
        record_execution(suggestion.action_type, "error")
        logging.warning(f"Suggestion not executable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except BackendCommandError as e:
        record_execution(suggestion.action_type, "error")
        logging.error(f"Backend command failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=502, detail=e.message)

    execution = outcome.execution
    result = execution.import_result
    duration_ms = (time.time() - start_time) * 1000
    record_execution(suggestion.action_type, execution.outcome, result)
    record_diagnostics(execution.diagnostics)
    log_execution(
        request_id,
        suggestion.id,
        suggestion.action_type,
        execution.outcome,
        duration_ms,
        imported=result.imported_count if result else None,
        duplicates=len(result.duplicates) if result else None,
        errors=len(result.errors) if result else None,
    )
    _record_transition(request_id, outcome)

    return ConfirmResponse(
        suggestion=to_suggestion_schema(suggestion, manager, config),
        outcome=execution.outcome,
        message=execution.message,
        import_result=(
            ImportResultSchema(
                imported_count=result.imported_count,
                errors=result.errors,
                duplicates=result.duplicates,
            )
            if result
            else None
        ),
        chat_messages=[entry.content for entry in execution.chat_entries()],
        status_persisted=outcome.status_persisted,
    )


async def _decline(
    suggestion: Suggestion,
    request_id: str,
    manager: SuggestionLifecycleManager,
    config: AssistantConfig,
) -> DeclineResponse:
    try:
        outcome = await manager.decline(suggestion)
    except (InvalidStatusTransitionError, SuggestionBusyError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    _record_transition(request_id, outcome)
    return DeclineResponse(
        suggestion=to_suggestion_schema(suggestion, manager, config),
        status_persisted=outcome.status_persisted,
    )


@router.post("/suggestions/{suggestion_id}/confirm", response_model=ConfirmResponse)
async def confirm_suggestion(
    suggestion_id: int,
    request: Request,
    body: Optional[ConfirmRequest] = None,
    manager: SuggestionLifecycleManager = Depends(get_manager),
    config: AssistantConfig = Depends(get_config),
):
    request_id = get_request_id(request)
    suggestion = await _find(manager, suggestion_id, request_id)
    return await _confirm(suggestion, body, request_id, manager, config)


@router.post("/suggestions/by-handle/{handle}/confirm", response_model=ConfirmResponse)
async def confirm_suggestion_by_handle(
    handle: str,
    request: Request,
    body: Optional[ConfirmRequest] = None,
    manager: SuggestionLifecycleManager = Depends(get_manager),
    config: AssistantConfig = Depends(get_config),
):
    """Confirm a suggestion held in memory, including one that never got an id"""
    suggestion = _find_by_handle(manager, handle)
    return await _confirm(suggestion, body, get_request_id(request), manager, config)


@router.post("/suggestions/{suggestion_id}/decline", response_model=DeclineResponse)
async def decline_suggestion(
    suggestion_id: int,
    request: Request,
    manager: SuggestionLifecycleManager = Depends(get_manager),
    config: AssistantConfig = Depends(get_config),
):
    request_id = get_request_id(request)
    suggestion = await _find(manager, suggestion_id, request_id)
    return await _decline(suggestion, request_id, manager, config)


@router.post("/suggestions/by-handle/{handle}/decline", response_model=DeclineResponse)
async def decline_suggestion_by_handle(
    handle: str,
    request: Request,
    manager: SuggestionLifecycleManager = Depends(get_manager),
    config: AssistantConfig = Depends(get_config),
):
    suggestion = _find_by_handle(manager, handle)
    return await _decline(suggestion, get_request_id(request), manager, config)


@router.post("/conversations/{conversation_id}/suggestions/decline-all", response_model=DeclineAllResponse)
async def decline_all_suggestions(
    conversation_id: int,
    request: Request,
    manager: SuggestionLifecycleManager = Depends(get_manager),
    config: AssistantConfig = Depends(get_config),
):
    """Decline every pending suggestion that is not currently executing"""
    request_id = get_request_id(request)
    try:
        await manager.load(conversation_id)
    except SuggestionStoreError as e:
        raise _store_unavailable(request_id, e)
    outcomes = await manager.decline_all(conversation_id)
    for outcome in outcomes:
        _record_transition(request_id, outcome)
    return DeclineAllResponse(
        conversation_id=conversation_id,
        declined=[to_suggestion_schema(o.suggestion, manager, config) for o in outcomes],
    )
