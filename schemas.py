"""
Database Schemas for the Blog API

The Post model below is the shape of a document in the "posts" collection,
with the defaults applied on insert. Comments are embedded in their post.

Request bodies are validated by the separate *Create models before anything
touches the database.
"""

from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    # BSON dates keep milliseconds only
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class Comment(BaseModel):
    """
    Comment embedded in a post's "comments" array
    """
    text: Optional[str] = Field(None, description="Comment text")
    user: Optional[str] = Field(None, description="Name of the commenter")
    date: datetime = Field(default_factory=utcnow, description="Time the comment was added")

    def to_document(self) -> dict:
        # embedded comments carry their own id, like a subdocument
        return {"_id": ObjectId(), **self.model_dump()}


class Post(BaseModel):
    """
    Blog posts
    Collection: "posts"
    """
    title: str = Field(..., description="Post title")
    content: str = Field(..., description="Post body")
    author: str = Field(..., description="Author name")
    tags: List[str] = Field(default_factory=list, description="Free-form labels")
    likes: int = Field(0, description="Like counter, only ever incremented")
    comments: List[Comment] = Field(default_factory=list)
    published: bool = Field(False, description="Visible to readers")
    createdAt: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict:
        data = self.model_dump(exclude={"comments"})
        data["comments"] = [c.to_document() for c in self.comments]
        return data


# Request bodies

class CommentCreate(BaseModel):
    text: Optional[str] = None
    user: Optional[str] = None


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    likes: int = Field(0, ge=0)
    comments: List[CommentCreate] = Field(default_factory=list)
    published: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    def to_post(self) -> Post:
        data = self.model_dump(exclude={"comments"})
        return Post(**data, comments=[Comment(**c.model_dump()) for c in self.comments])
