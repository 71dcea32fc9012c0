from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SkillOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    category: str | None = None
    created_at: datetime
    updated_at: datetime


class SkillCreateRequest(BaseModel):
    name: str
    description: str | None = None
    category: str | None = None


class SkillUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None


class JobCategoryOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class JobCategoryCreateRequest(BaseModel):
    name: str
    description: str | None = None


class JobCategoryUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None


class ContentStatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_skills: int = Field(alias="totalSkills")
    total_categories: int = Field(alias="totalCategories")
    skills_this_month: int = Field(alias="skillsThisMonth")
    categories_this_month: int = Field(alias="categoriesThisMonth")
