from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import get_current_user_id, get_token_user_id
from app.schemas import AuthResponse, CurrentUserResponse, LoginRequest, RegisterRequest, UserResponse
from app.services import user_service

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", status_code=201, response_model=AuthResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.register(db, data)

@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.login(db, data)

@router.get("/me", response_model=CurrentUserResponse)
async def me(user_id: str = Depends(get_token_user_id), db: AsyncSession = Depends(get_db)):
    return {"user": await user_service.get_current_user(db, user_id)}

@router.get("/users", response_model=list[UserResponse])
async def list_users(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    return await user_service.get_users(db)
