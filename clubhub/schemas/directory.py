from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class HODCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    designation: str = Field(..., min_length=1, max_length=255)
    photo: str = Field(..., min_length=1)
    order: int = 0


class HODUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    designation: str | None = None
    photo: str | None = None
    order: int | None = None


class HODOut(BaseModel):
    id: int
    name: str
    designation: str
    photo: str
    order: int
    created_at: datetime

    class Config:
        from_attributes = True


class CommitteeMemberCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    photo: str = Field(..., min_length=1)
    order: int = 0


class CommitteeMemberOut(BaseModel):
    id: int
    name: str
    photo: str
    order: int

    class Config:
        from_attributes = True


class CommitteeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    priority: int | None = None


class CommitteeOut(BaseModel):
    id: int
    name: str
    priority: int | None = None
    members: list[CommitteeMemberOut] = Field(default_factory=list)

    class Config:
        from_attributes = True
