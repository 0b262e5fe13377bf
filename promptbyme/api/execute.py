"""Execution endpoints — run a stored prompt or a whole flow against an AI provider.

Both respond with the executor's body verbatim. The api_call_logs row is written
as a background task, after the response has been sent.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse

from promptbyme.core.audit import ApiCallLogger, CallMetadata, get_audit_logger
from promptbyme.core.executor import ExecutionResult, InboundCall, PromptExecutor, get_prompt_executor
from promptbyme.core.flow_executor import FlowExecutor, get_flow_executor

router = APIRouter()


async def _inbound(request: Request) -> InboundCall:
    return InboundCall(
        meta=CallMetadata.from_headers(str(request.url), request.method, request.headers),
        authorization=request.headers.get("authorization"),
        body=await request.body(),
    )


def _respond(
    result: ExecutionResult, audit: ApiCallLogger, background_tasks: BackgroundTasks
) -> JSONResponse:
    background_tasks.add_task(audit.record, result.log_entry)
    return JSONResponse(result.body, status_code=result.status_code, background=background_tasks)


@router.post("/run-prompt-api")
async def run_prompt_api(
    request: Request,
    background_tasks: BackgroundTasks,
    executor: PromptExecutor = Depends(get_prompt_executor),
    audit: ApiCallLogger = Depends(get_audit_logger),
) -> JSONResponse:
    """Execute one stored prompt with variable substitution."""
    result = await executor.run(await _inbound(request))
    return _respond(result, audit, background_tasks)


@router.post("/run-prompt-flow-api")
async def run_prompt_flow_api(
    request: Request,
    background_tasks: BackgroundTasks,
    executor: FlowExecutor = Depends(get_flow_executor),
    audit: ApiCallLogger = Depends(get_audit_logger),
) -> JSONResponse:
    """Execute every step of a flow in order, chaining outputs."""
    result = await executor.run(await _inbound(request))
    return _respond(result, audit, background_tasks)
