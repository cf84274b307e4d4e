from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from truthlens.api.deps import Principal, require_admin
from truthlens.db.content import create_topic, delete_topic, get_topic, list_topics, update_topic
from truthlens.db.session import get_async_session
from truthlens.models.schemas import MessageResponse, TopicCreate, TopicOut, TopicUpdate

router = APIRouter(prefix="/api/topics", tags=["topics"])


@router.get("", response_model=list[TopicOut])
async def get_topics(session: AsyncSession = Depends(get_async_session)):
    topics = await list_topics(session)
    return [TopicOut.model_validate(t) for t in topics]


@router.get("/{topic_id}", response_model=TopicOut)
async def get_single_topic(topic_id: int, session: AsyncSession = Depends(get_async_session)):
    return TopicOut.model_validate(await get_topic(session, topic_id))


@router.post("", response_model=TopicOut, status_code=201)
async def post_topic(
    body: TopicCreate,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return TopicOut.model_validate(await create_topic(session, body))


@router.put("/{topic_id}", response_model=TopicOut)
async def put_topic(
    topic_id: int,
    body: TopicUpdate,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    return TopicOut.model_validate(await update_topic(session, topic_id, body))


@router.delete("/{topic_id}", response_model=MessageResponse)
async def remove_topic(
    topic_id: int,
    principal: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_async_session),
):
    await delete_topic(session, topic_id)
    return MessageResponse(message="Topic deleted successfully")
