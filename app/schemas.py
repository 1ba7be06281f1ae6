from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


# --- User / auth ---

class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=128)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    success: bool = True
    user: UserResponse
    token: str


class CurrentUserResponse(BaseModel):
    success: bool = True
    user: UserResponse


# --- Minimal embedded views ---

class AuthorSummary(BaseModel):
    id: str
    username: str


class CategorySummary(BaseModel):
    id: str
    name: str


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class CategoryResponse(BaseModel):
    id: str
    name: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1)


class CommentResponse(BaseModel):
    user: AuthorSummary | None
    content: str
    created_at: datetime


# --- Post ---

class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    category: str = Field(min_length=1, description="Category id")
    tags: list[str] = []
    is_published: bool = False
    slug: str | None = Field(None, min_length=1, max_length=100)


class PostUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    excerpt: str | None = Field(None, max_length=500)
    category: str | None = Field(None, min_length=1)
    tags: list[str] | None = None
    is_published: bool | None = None


class PostResponse(BaseModel):
    id: str
    title: str
    slug: str
    content: str
    excerpt: str | None
    tags: list[str] = []
    is_published: bool
    view_count: int
    author: AuthorSummary | None = None
    category: CategorySummary | None = None
    comments: list[CommentResponse] = []
    created_at: datetime
    updated_at: datetime


class PostEnvelope(BaseModel):
    success: bool = True
    post: PostResponse


# --- Pagination ---

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PostListResponse(BaseModel):
    success: bool = True
    posts: list[PostResponse]
    pagination: Pagination


class MessageResponse(BaseModel):
    success: bool = True
    message: str
