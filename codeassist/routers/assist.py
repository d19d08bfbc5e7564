"""Edit and one-shot assistant endpoints"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..models.diff import PatchPreview
from ..models.edits import EditDescriptor
from ..services.config_manager import ConfigManager
from ..services.diff_generator import DiffGenerator
from ..services.errors import ConfigurationError, TransportError
from ..services.llm_service import LLMService
from ..services.tool_call_parser import extract_code_blocks, parse_tool_calls, strip_tool_calls

router = APIRouter()
diff_generator = DiffGenerator()


class ParseRequest(BaseModel):
    response_text: str


class ParseResponse(BaseModel):
    edits: list[EditDescriptor]
    prose: str


class ApplyRequest(BaseModel):
    """Selection plus either parsed edits or the raw response to parse"""

    selection_text: str
    edits: list[EditDescriptor] | None = None
    response_text: str | None = None
    label: str = "selection"


class ErrorAnalysisRequest(BaseModel):
    error_output: str
    code: str | None = None


class GenerateRequest(BaseModel):
    description: str
    selection_text: str | None = None


class HintRequest(BaseModel):
    line: str
    surrounding: str | None = None


class AssistResponse(BaseModel):
    content: str
    edits: list[EditDescriptor] = []
    code: str | None = None
    preview: PatchPreview | None = None


def get_llm_service() -> LLMService:
    return LLMService(ConfigManager.get_instance().get_config())


async def _run(call):
    try:
        return await call
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/parse", response_model=ParseResponse)
async def parse_response(request: ParseRequest) -> ParseResponse:
    """Extract edit descriptors from a completed response"""
    edits = parse_tool_calls(request.response_text)
    prose = strip_tool_calls(request.response_text) if edits else request.response_text
    return ParseResponse(edits=edits, prose=prose)


@router.post("/apply", response_model=PatchPreview)
async def apply_edits(request: ApplyRequest) -> PatchPreview:
    """Preview the selection after applying edits; the editor writes it on accept"""
    if request.edits is not None:
        edits = request.edits
    elif request.response_text is not None:
        edits = parse_tool_calls(request.response_text)
    else:
        raise HTTPException(status_code=400, detail="Either edits or response_text is required")
    return diff_generator.preview(request.selection_text, edits, request.label)


@router.post("/analyze-error", response_model=AssistResponse)
async def analyze_error(request: ErrorAnalysisRequest) -> AssistResponse:
    """Explain build errors; fix blocks are previewed against the given code"""
    response = await _run(get_llm_service().analyze_error(request.error_output, request.code))
    edits = parse_tool_calls(response)
    preview = diff_generator.preview(request.code, edits) if edits and request.code else None
    return AssistResponse(content=response, edits=edits, preview=preview)


@router.post("/generate", response_model=AssistResponse)
async def generate_code(request: GenerateRequest) -> AssistResponse:
    """Generate new code, or a whole-block rewrite of the selection"""
    response = await _run(get_llm_service().generate_code(request.description, request.selection_text))
    edits = parse_tool_calls(response)
    if edits and request.selection_text is not None:
        preview = diff_generator.preview(request.selection_text, edits)
        return AssistResponse(content=response, edits=edits, code=preview.final_text, preview=preview)

    blocks = extract_code_blocks(response)
    code = blocks[0].code if blocks else response.strip()
    return AssistResponse(content=response, edits=edits, code=code)


@router.post("/hint", response_model=AssistResponse)
async def hint(request: HintRequest) -> AssistResponse:
    """One-sentence hint for a line of code"""
    response = await _run(get_llm_service().hint(request.line, request.surrounding))
    return AssistResponse(content=response)


@router.get("/digest")
async def get_digest(root: str) -> dict:
    """Context digest the system prompt would carry for `root`"""
    text = await get_llm_service().get_digest(root)
    return {"root": root, "digest": text, "length": len(text)}
