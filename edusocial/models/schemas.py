from pydantic import BaseModel, Field, computed_field, field_validator
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional


# Selection values map a main category to its chosen subcategories
SelectedCategories = Dict[str, List[str]]
CategoryTaxonomy = Dict[str, List[str]]


class CategoryEntry(BaseModel):
    id: Optional[str] = None
    main_category: str
    sub_category: str


class CategoryEntryInput(BaseModel):
    main_category: str = ""
    sub_category: str = ""


class FilterStatus(str, Enum):
    ALL = "all"
    SOLVED = "solved"
    UNSOLVED = "unsolved"


class Timeframe(str, Enum):
    ALL = "all"
    WEEK = "week"
    MONTH = "month"


class FilterOptions(BaseModel):
    categories: List[str] = Field(default_factory=list)
    status: FilterStatus = FilterStatus.ALL
    timeframe: Timeframe = Timeframe.ALL


class ProfileSummary(BaseModel):
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class Post(BaseModel):
    """A feed post.

    The accepted-answer state lives in ``correct_comment_id``;
    ``is_correct_answer`` is derived from it so the two cannot disagree.
    """
    id: str
    user_id: str
    content: str = ""
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    video_thumbnail: Optional[str] = None
    video_duration: Optional[str] = None
    exam_categories: List[str] = Field(default_factory=list)
    post_type: str = "text"
    correct_comment_id: Optional[str] = None
    likes_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
    ai_response_enabled: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    profile: Optional[ProfileSummary] = None
    user_liked: bool = False

    @field_validator("exam_categories", mode="before")
    @classmethod
    def _none_tags_to_empty(cls, value):
        return value or []

    @field_validator("likes_count", "comments_count", "shares_count", mode="before")
    @classmethod
    def _none_count_to_zero(cls, value):
        return value or 0

    @computed_field
    @property
    def is_correct_answer(self) -> bool:
        return self.correct_comment_id is not None


class Comment(BaseModel):
    id: str
    post_id: str
    user_id: str
    content: str
    attachment_url: Optional[str] = None
    parent_id: Optional[str] = None
    proposed_as_correct: bool = False
    created_at: Optional[datetime] = None
    profile: Optional[ProfileSummary] = None
    replies: List["Comment"] = Field(default_factory=list)


Comment.model_rebuild()


class Profile(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    exam_categories: Any = None
    created_at: Optional[datetime] = None


class Notification(BaseModel):
    id: str
    title: str
    message: str
    target_users: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class ToggleMainRequest(BaseModel):
    selection: SelectedCategories = Field(default_factory=dict)
    main_category: str


class ToggleSubRequest(BaseModel):
    selection: SelectedCategories = Field(default_factory=dict)
    main_category: str
    sub_category: str


class SelectionRequest(BaseModel):
    selection: SelectedCategories = Field(default_factory=dict)


class CreatePostRequest(BaseModel):
    content: str = ""
    exam_categories: List[str] = Field(default_factory=list)
    attachments: List[str] = Field(default_factory=list)
    ai_response_enabled: bool = False


class CreateCommentRequest(BaseModel):
    content: str = ""
    attachment_url: Optional[str] = None
    parent_id: Optional[str] = None


class ProposeRequest(BaseModel):
    value: bool


class AcceptRequest(BaseModel):
    comment_id: str


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None


class NotificationCreate(BaseModel):
    title: str = ""
    message: str = ""
    target_users: Optional[List[str]] = None


class SettingUpdate(BaseModel):
    value: Any = None


class SettingsSave(BaseModel):
    settings: Dict[str, Any]


class BlockUserRequest(BaseModel):
    user_id: str
    reason: Optional[str] = None


class RoleAssignment(BaseModel):
    user_id: str
    role: Literal["admin", "moderator", "user"]


# ---------------------------------------------------------------------------
# Serverless-function contracts (camelCase to match the web client)
# ---------------------------------------------------------------------------

class AIResponseRequest(BaseModel):
    postId: Optional[str] = None
    content: Optional[str] = None
    imageUrl: Optional[str] = None


class ModelInfo(BaseModel):
    id: str
    name: str
    provider: Literal["openai", "google"]
    description: str


class ModelListRequest(BaseModel):
    provider: str
