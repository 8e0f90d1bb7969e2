"""
Process Adapter - Main Application

HTTP binding for the process tools:
- Command gate with override token for destructive operations
- Long-lived sessions with incremental output polling
- Interactive input and two-phase termination
"""

import os
import logging
from typing import Optional, List
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Body
from pydantic import BaseModel, Field

from process_adapter.config import AdapterSettings
from process_adapter.domain import (
    CommandGate,
    GatePolicy,
    SessionRegistry,
    ProcessTools,
    StartProcessRequest,
    ErrorKind,
)

settings = AdapterSettings.from_env()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger("process-adapter")


# ============================================================================
# Request/Response Models
# ============================================================================

class StartProcessBody(BaseModel):
    """Request to start a process."""
    command: str = Field(..., min_length=1, description="Command line handed to the shell")
    timeout_ms: Optional[int] = Field(None, ge=0, le=600000, description="Initial wait in ms")
    shell: Optional[str] = Field(None, description="Interpreter to run the command with")


class StartProcessResponse(BaseModel):
    """Response from starting a process."""
    process_id: int
    initial_output: str = ""
    status_hint: str = ""
    still_running: bool = False
    exit_code: Optional[int] = None
    text: str = ""


class ProcessIdBody(BaseModel):
    """Request addressing an existing process."""
    process_id: int


class WriteInputBody(BaseModel):
    """Request to write stdin to a running process."""
    process_id: int
    input: str


class ReadOutputResponse(BaseModel):
    """New output since the last read; null once nothing more will arrive."""
    process_id: int
    output: Optional[str] = None


class SuccessResponse(BaseModel):
    process_id: int
    success: bool


class ActiveSessionInfo(BaseModel):
    """Live session information."""
    process_id: int
    blocked: bool
    runtime_ms: int


class CompletedSessionInfo(BaseModel):
    """Completed session information."""
    process_id: int
    command: str
    full_output: str
    exit_code: Optional[int] = None
    signal: Optional[int] = None
    started_at: str
    ended_at: str
    runtime_seconds: float
    completion_reported: bool


# ============================================================================
# Application State
# ============================================================================

class AppState:
    """Global application state."""
    registry: Optional[SessionRegistry] = None
    tools: Optional[ProcessTools] = None


state = AppState()


def _load_policy(path: Optional[str]) -> Optional[GatePolicy]:
    if not path:
        return None
    if not os.path.exists(path):
        logger.warning(f"Gate policy {path} not found - using default rules")
        return None
    try:
        return GatePolicy.load(path)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to load gate policy: {e} - using default rules")
        return None


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    # Startup
    gate = CommandGate(policy=_load_policy(settings.policy_path))
    state.registry = SessionRegistry(
        gate=gate,
        default_shell=settings.default_shell,
        cwd=settings.working_directory,
        completed_capacity=settings.completed_capacity,
        kill_grace_seconds=settings.kill_grace_seconds,
    )
    state.tools = ProcessTools(state.registry)

    logger.info(
        f"Process Adapter started (shell={settings.default_shell or 'default'}, "
        f"cwd={settings.working_directory or os.getcwd()})"
    )

    yield

    # Shutdown
    if state.registry:
        await state.registry.shutdown()
    state.registry = None
    state.tools = None

    logger.info("Process Adapter stopped")


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="Process Adapter",
    version="1.0.0",
    description="Shell process execution for AI agents with a destructive-command gate",
    lifespan=lifespan
)


def _tools() -> ProcessTools:
    if not state.tools:
        raise HTTPException(status_code=503, detail="Adapter not initialized")
    return state.tools


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "process-adapter",
        "active_sessions": len(state.registry.list_active()) if state.registry else 0,
    }


# ============================================================================
# Process Tools
# ============================================================================

@app.post("/tools/process:start", response_model=StartProcessResponse)
async def process_start(request: StartProcessBody = Body(...)):
    """
    Start a process and wait for it up to timeout_ms.

    - Blocked commands are rejected outright (403)
    - Destructive commands need the override token (403 with guidance)
    - A process still running at the deadline keeps running in the background
    """
    tools = _tools()
    timeout_ms = request.timeout_ms if request.timeout_ms is not None else settings.default_timeout_ms

    result = await tools.start_process(
        StartProcessRequest(command=request.command, timeout_ms=timeout_ms, shell=request.shell)
    )

    if result.is_error:
        status = 403 if result.error_kind == ErrorKind.GATE_REJECTION else 500
        raise HTTPException(status_code=status, detail=result.text)

    return StartProcessResponse(
        process_id=result.process_id,
        initial_output=result.initial_output,
        status_hint=result.status_hint,
        still_running=result.still_running,
        exit_code=result.exit_code,
        text=result.text,
    )


@app.post("/tools/process:read_output", response_model=ReadOutputResponse)
async def process_read_output(request: ProcessIdBody = Body(...)):
    """Drain output produced since the last read."""
    output = _tools().read_output(request.process_id)
    return ReadOutputResponse(process_id=request.process_id, output=output)


@app.post("/tools/process:write_input", response_model=SuccessResponse)
async def process_write_input(request: WriteInputBody = Body(...)):
    """Write a line to a running process's stdin."""
    success = await _tools().write_input(request.process_id, request.input)
    return SuccessResponse(process_id=request.process_id, success=success)


@app.post("/tools/process:terminate", response_model=SuccessResponse)
async def process_terminate(request: ProcessIdBody = Body(...)):
    """Interrupt a running process; kill it if it is still alive after the grace period."""
    success = _tools().terminate(request.process_id)
    return SuccessResponse(process_id=request.process_id, success=success)


@app.get("/tools/process:list_sessions", response_model=List[ActiveSessionInfo])
async def process_list_sessions():
    """List all live sessions."""
    return [ActiveSessionInfo(**s) for s in _tools().list_sessions()]


@app.get("/tools/process:list_completed", response_model=List[CompletedSessionInfo])
async def process_list_completed():
    """List retained completed sessions, oldest first."""
    return [CompletedSessionInfo(**s) for s in _tools().list_completed()]


# ============================================================================
# Entry Point
# ============================================================================

def run() -> None:
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
