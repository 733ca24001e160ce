"""
JSON-RPC invocation endpoint.

Agents call the pipeline through a single POST /mcp endpoint speaking
JSON-RPC 2.0. The methods:
- analyze_video_for_rpa: video in, analysis and written document out
- generate_rpa_document: caller-supplied analysis data to a document
- extract_video_frames: sampled frame descriptors without payloads
- inspect_video: validity, metadata and a processing time estimate
- list_document_templates: the document templates, or one of them

Sampling parameters left out fall back to the configured defaults.

Errors never surface as HTTP errors. Every failure becomes a JSON-RPC
error object; pipeline errors carry their `kind` in `error.data`.
"""

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field, ValidationError

from ...core.documents import OutputFormat, TemplateType, get_template, list_templates
from ...core.errors import InvalidInputError, PipelineError
from ..dependencies import PipelineBuilder, PipelineBuilderDep

logger = logging.getLogger(__name__)

router = APIRouter()

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
PIPELINE_ERROR = -32000


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class JsonRpcRequest(BaseModel):
    jsonrpc: Literal["2.0"]
    method: str
    params: dict[str, Any] = Field(default_factory=dict)
    id: Optional[Union[int, str]] = None


class AnalyzeVideoParams(BaseModel):
    """Parameters for analyze_video_for_rpa."""
    video_path: str = Field(description="Path to the recording on the server")
    process_name: str = Field(min_length=1, description="Name of the recorded business process")
    output_format: OutputFormat = OutputFormat.MARKDOWN
    frame_interval: Optional[float] = Field(default=None, gt=0, description="Seconds between sampled frames")
    template_type: TemplateType = TemplateType.STANDARD


class GenerateDocumentParams(BaseModel):
    """Parameters for generate_rpa_document."""
    process_data: dict[str, Any] = Field(
        description="Analysis data with processName, summary, rpaActions and testCases"
    )
    output_format: OutputFormat = OutputFormat.MARKDOWN
    template_type: TemplateType = TemplateType.STANDARD
    author: Optional[str] = None


class ExtractFramesParams(BaseModel):
    """Parameters for extract_video_frames."""
    video_path: str
    interval: Optional[float] = Field(default=None, gt=0)
    max_frames: Optional[int] = Field(default=None, ge=1)


class InspectVideoParams(BaseModel):
    """Parameters for inspect_video."""
    video_path: str
    interval: Optional[float] = Field(default=None, gt=0)


class ListTemplatesParams(BaseModel):
    template_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Method Handlers
# ---------------------------------------------------------------------------

async def _analyze_video(build: PipelineBuilder, params: AnalyzeVideoParams) -> dict:
    outcome = await (await build(True)).analyze_video(
        Path(params.video_path),
        process_name=params.process_name,
        output_format=params.output_format,
        frame_interval=params.frame_interval,
        template_type=params.template_type,
    )
    return outcome.to_dict()


async def _generate_document(build: PipelineBuilder, params: GenerateDocumentParams) -> dict:
    outcome = await (await build(False)).generate_document(
        params.process_data,
        output_format=params.output_format,
        template_type=params.template_type,
        author=params.author,
    )
    return outcome.to_dict()


async def _extract_frames(build: PipelineBuilder, params: ExtractFramesParams) -> dict:
    outcome = await (await build(False)).extract_frames(
        Path(params.video_path),
        interval=params.interval,
        max_frames=params.max_frames,
    )
    return outcome.to_dict()


async def _inspect_video(build: PipelineBuilder, params: InspectVideoParams) -> dict:
    inspection = await (await build(False)).inspect_video(
        Path(params.video_path),
        interval=params.interval,
    )
    return inspection.to_dict()


async def _list_templates(build: PipelineBuilder, params: ListTemplatesParams) -> dict:
    if params.template_id is None:
        return {"templates": [t.to_dict() for t in list_templates()]}

    template = get_template(params.template_id)
    if template is None:
        raise InvalidInputError(f"Unknown template: {params.template_id}")
    return {"templates": [template.to_dict()]}


Handler = Callable[[PipelineBuilder, Any], Awaitable[dict]]

METHODS: dict[str, tuple[type[BaseModel], Handler]] = {
    "analyze_video_for_rpa": (AnalyzeVideoParams, _analyze_video),
    "generate_rpa_document": (GenerateDocumentParams, _generate_document),
    "extract_video_frames": (ExtractFramesParams, _extract_frames),
    "inspect_video": (InspectVideoParams, _inspect_video),
    "list_document_templates": (ListTemplatesParams, _list_templates),
}


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

def _error(request_id, code: int, message: str, data: Optional[dict] = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "error": error, "id": request_id}


@router.post(
    "",
    summary="JSON-RPC 2.0 endpoint",
    description="Invoke one of the methods listed in METHODS",
)
async def handle_rpc(request: Request, build_pipeline: PipelineBuilderDep) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return _error(None, PARSE_ERROR, "Parse error")

    request_id = body.get("id") if isinstance(body, dict) else None

    try:
        rpc = JsonRpcRequest.model_validate(body)
    except ValidationError as e:
        return _error(request_id, INVALID_REQUEST, "Invalid request", {"errors": e.errors(include_url=False, include_context=False)})

    if rpc.method not in METHODS:
        logger.warning("Unknown RPC method", extra={"method": rpc.method})
        return _error(rpc.id, METHOD_NOT_FOUND, f"Method not found: {rpc.method}")

    params_model, handler = METHODS[rpc.method]

    try:
        params = params_model.model_validate(rpc.params)
    except ValidationError as e:
        return _error(rpc.id, INVALID_PARAMS, "Invalid params", {"errors": e.errors(include_url=False, include_context=False)})

    logger.info("RPC call", extra={"method": rpc.method, "id": rpc.id})

    try:
        result = await handler(build_pipeline, params)
    except PipelineError as e:
        logger.warning(
            "RPC call failed",
            extra={"method": rpc.method, "kind": e.kind, "error": e.message},
        )
        return _error(rpc.id, PIPELINE_ERROR, e.message, {"kind": e.kind})
    except Exception as e:
        logger.error(
            "Unexpected error in RPC call",
            extra={"method": rpc.method, "error": str(e)},
            exc_info=e,
        )
        return _error(rpc.id, INTERNAL_ERROR, "Internal error")

    return {"jsonrpc": "2.0", "result": result, "id": rpc.id}
