from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from loguru import logger

from fitcoach.api.registry import CoachRegistry
from fitcoach.api.schemas import AcceptRequest, AnalysisOverview, ChatTurnResponse, MessageRequest
from fitcoach.coach.coach_service import CoachService
from fitcoach.coach.errors import ConversationBusyError
from fitcoach.coach.schemas.chat import ChatMessage
from fitcoach.coach.schemas.plans import ProgressSnapshot, UserProfile

router = APIRouter(prefix="/coach/{user_id}", tags=["coach"])


def get_registry(request: Request) -> CoachRegistry:
    return request.app.state.registry


async def get_service(user_id: str, registry: CoachRegistry = Depends(get_registry)) -> CoachService:
    return await registry.get(user_id)


def _busy() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="A message is already being processed for this conversation",
    )


def _turn(service: CoachService, registry: CoachRegistry, reply: ChatMessage | None) -> ChatTurnResponse:
    pending = service.pending_proposal
    return ChatTurnResponse(
        reply=reply,
        pending_proposal=pending.model_dump(mode="json", by_alias=True) if pending else None,
        notifications=registry.sink(service.user_id).drain(),
    )


@router.post("/messages", response_model=ChatTurnResponse)
async def send_message(
    req: MessageRequest,
    service: CoachService = Depends(get_service),
    registry: CoachRegistry = Depends(get_registry),
) -> ChatTurnResponse:
    """Send a user message and return the assistant reply."""
    try:
        reply = await service.send_message(req.message)
    except ConversationBusyError as e:
        logger.warning("Conversation busy", user_id=service.user_id)
        raise _busy() from e
    return _turn(service, registry, reply)


@router.get("/messages", response_model=list[ChatMessage])
async def list_messages(service: CoachService = Depends(get_service)) -> list[ChatMessage]:
    return service.messages


@router.delete("/messages", status_code=status.HTTP_204_NO_CONTENT)
async def clear_messages(service: CoachService = Depends(get_service)) -> Response:
    service.clear_history()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/proposal/accept", response_model=ChatTurnResponse)
async def accept_proposal(
    req: AcceptRequest | None = None,
    service: CoachService = Depends(get_service),
    registry: CoachRegistry = Depends(get_registry),
) -> ChatTurnResponse:
    """Apply the pending proposal.

    Raises:
        HTTPException: 404 if nothing (matching) is pending
    """
    reply = await service.accept_proposal(req.proposal_id if req else None)
    if reply is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending proposal")
    return _turn(service, registry, reply)


@router.post("/proposal/reject", response_model=ChatTurnResponse)
async def reject_proposal(
    service: CoachService = Depends(get_service),
    registry: CoachRegistry = Depends(get_registry),
) -> ChatTurnResponse:
    return _turn(service, registry, service.reject_proposal())


@router.post("/analysis", response_model=ChatTurnResponse)
async def run_analysis(
    service: CoachService = Depends(get_service),
    registry: CoachRegistry = Depends(get_registry),
) -> ChatTurnResponse:
    try:
        reply = await service.analyze_progress()
    except ConversationBusyError as e:
        raise _busy() from e
    return _turn(service, registry, reply)


@router.get("/analysis", response_model=AnalysisOverview)
async def get_analyses(service: CoachService = Depends(get_service)) -> AnalysisOverview:
    scheduler = service.scheduler
    return AnalysisOverview(
        analyses=await scheduler.analysis_store.get_all(),
        has_recent_analysis=await scheduler.has_recent_analysis(),
        insights=await scheduler.analysis_insights(),
    )


@router.put("/profile", response_model=UserProfile)
async def update_profile(profile: UserProfile, service: CoachService = Depends(get_service)) -> UserProfile:
    if profile.id != service.user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Profile id does not match user id")
    service.profile = profile
    return profile


@router.put("/progress", status_code=status.HTTP_204_NO_CONTENT)
async def update_progress(progress: ProgressSnapshot, service: CoachService = Depends(get_service)) -> Response:
    service.set_progress(progress)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
