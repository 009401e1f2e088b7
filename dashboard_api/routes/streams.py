"""Stream control routes."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from stream_engine.models import MediaClass
from stream_engine.service import StreamService

router = APIRouter()


class CreateStreamRequest(BaseModel):
    """New stream registration."""

    stream_id: str = Field(..., description="Stream identifier (letters, digits, '_' and '-')")


class DestinationRequest(BaseModel):
    """RTMP destination for start and restart."""

    rtmp_url: str = Field(..., description="RTMP base URL, e.g. rtmp://a.rtmp.youtube.com/live2")
    stream_key: str = Field(..., description="Stream key appended to the URL")


def get_stream_service(request: Request) -> StreamService:
    """Stream service owned by the application."""
    return request.app.state.service


def _ensure_success(result: dict, status_code: int = status.HTTP_400_BAD_REQUEST) -> dict:
    if not result["success"]:
        raise HTTPException(status_code=status_code, detail=result["message"])
    return result


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_stream(
    body: CreateStreamRequest,
    service: StreamService = Depends(get_stream_service),
):
    """Register a new stream.

    Returns:
        dict: Registration result.

    Raises:
        HTTPException: If the id is malformed or already taken.
    """
    return _ensure_success(await service.register_stream(body.stream_id))


@router.get("")
async def list_streams(service: StreamService = Depends(get_stream_service)):
    """List every stream with its status and asset counts."""
    return {"streams": service.list_streams()}


@router.get("/{stream_id}")
async def get_stream(stream_id: str, service: StreamService = Depends(get_stream_service)):
    """Get status, assets and transcoder details of one stream.

    Returns:
        dict: Stream details.
    """
    return service.stream_details(stream_id)


@router.post("/{stream_id}/start")
async def start_stream(
    stream_id: str,
    body: DestinationRequest,
    service: StreamService = Depends(get_stream_service),
):
    """Start pushing a stream to an RTMP destination.

    Returns:
        dict: Start result.

    Raises:
        HTTPException: If the stream cannot be started.
    """
    service.status(stream_id)
    return _ensure_success(await service.start(stream_id, body.rtmp_url, body.stream_key))


@router.post("/{stream_id}/stop")
async def stop_stream(stream_id: str, service: StreamService = Depends(get_stream_service)):
    """Stop a stream; stopping an idle stream succeeds.

    Returns:
        dict: Stop result.
    """
    service.status(stream_id)
    return _ensure_success(await service.stop(stream_id))


@router.post("/{stream_id}/restart")
async def restart_stream(
    stream_id: str,
    body: DestinationRequest,
    service: StreamService = Depends(get_stream_service),
):
    """Stop a stream and start it again after the settle delay.

    Returns:
        dict: Restart result.
    """
    service.status(stream_id)
    return _ensure_success(await service.restart(stream_id, body.rtmp_url, body.stream_key))


@router.delete("/{stream_id}/assets/{media_class}/{filename}")
async def delete_asset(
    stream_id: str,
    media_class: MediaClass,
    filename: str,
    service: StreamService = Depends(get_stream_service),
):
    """Delete one asset file of a stream.

    Returns:
        dict: Deletion result.

    Raises:
        HTTPException: 404 if the file does not exist.
    """
    service.status(stream_id)
    result = service.delete_asset(stream_id, media_class, filename)
    if result["message"] == "File not found":
        return _ensure_success(result, status.HTTP_404_NOT_FOUND)
    return _ensure_success(result)
