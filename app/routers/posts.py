from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import PaginationParams, get_current_user_id
from app.schemas import CommentCreate, MessageResponse, PostCreate, PostEnvelope, PostListResponse, PostUpdate
from app.services import comment_service, post_service

router = APIRouter(prefix="/api/posts", tags=["posts"])

@router.get("", response_model=PostListResponse)
async def list_posts(
    pagination: PaginationParams = Depends(),
    category: str | None = Query(None, description="Category id to filter by."),
    search: str | None = Query(None, max_length=200, description="Case-insensitive title/content match."),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.get_posts(db, pagination.page, pagination.limit, category, search)

@router.post("", status_code=201, response_model=PostEnvelope)
async def create_post(
    data: PostCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return {"post": await post_service.create_post(db, user_id, data)}

@router.get("/{id_or_slug}", response_model=PostEnvelope)
async def get_post(id_or_slug: str, db: AsyncSession = Depends(get_db)):
    return {"post": await post_service.get_post(db, id_or_slug)}

@router.put("/{post_id}", response_model=PostEnvelope)
async def update_post(
    post_id: str,
    data: PostUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return {"post": await post_service.update_post(db, user_id, post_id, data)}

@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await post_service.delete_post(db, user_id, post_id)
    return {"message": "Post deleted successfully"}

@router.post("/{post_id}/comments", response_model=PostEnvelope)
async def add_comment(
    post_id: str,
    data: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return {"post": await comment_service.add_comment(db, user_id, post_id, data)}
