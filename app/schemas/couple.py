"""
Pairing schemas.

POST /couples/invite          → CreateInviteRequest  → InviteResponse
POST /couples/redeem          → RedeemInviteRequest  → CoupleResponse
GET  /couples/me              →                        CoupleResponse
PUT  /couples/{id}/categories → UpdateCategoriesRequest → CoupleResponse
POST /couples/{id}/dissolve   → UserRequest          → CoupleResponse
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


UserId = Annotated[str, Field(min_length=1, max_length=64, description="External identity of the acting user.")]


class UserRequest(BaseModel):
    user_id: UserId

    @field_validator("user_id", mode="before")
    @classmethod
    def strip_user_id(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("user_id must not be empty")
        return stripped


class CreateInviteRequest(UserRequest):
    categories: Optional[list[str]] = Field(
        default=None,
        description="Preferred question categories. Defaults to the configured set.",
        examples=[["daily_life", "fun"]],
    )


class RedeemInviteRequest(UserRequest):
    invite_code: Annotated[str, Field(
        min_length=1,
        max_length=32,
        description="Code shared by the inviting partner. Case and surrounding spaces are ignored.",
        examples=["A7K9MXPQ"],
    )]
    dev_allow_self_join: bool = Field(
        default=False,
        description="DEV ONLY. Lets the inviter redeem their own code. Rejected in production.",
    )


class UpdateCategoriesRequest(UserRequest):
    categories: list[str] = Field(min_length=1, examples=[["heart", "history"]])


class InviteResponse(BaseModel):
    couple_id: int
    invite_code: str
    expires_at: str


class CoupleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    partner_a_id: str
    partner_b_id: Optional[str]
    status: str
    invite_code: Optional[str]
    invite_code_expires_at: Optional[str]
    preferred_categories: list[str]
    paired_at: Optional[str]
    created_at: str
