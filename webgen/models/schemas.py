"""
Request and response schemas for the HTTP API.

Field names follow the browser client's camelCase JSON keys.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateRequest(_ApiModel):
    """Body of POST /generate (prompt and model arrive as query params)."""

    current_code: str = Field(default="", alias="currentCode")
    generated_images: Dict[str, str] = Field(default_factory=dict, alias="generatedImages")
    use_dalle: bool = Field(default=True, alias="useDallE")


class GenerateResponse(_ApiModel):
    code: str
    new_images: Dict[str, str] = Field(default_factory=dict, alias="newImages")
    pending_images: int = Field(default=0, alias="pendingImages")


class ProjectPlan(_ApiModel):
    """Enhanced build brief produced by the planning step."""

    enhanced_prompt: str = Field(alias="enhancedPrompt")
    files: List[str] = Field(default_factory=list)

    @field_validator("files", mode="before")
    @classmethod
    def files_from_mapping(cls, v):
        # Clients skipping the planning step send their current files mapping
        if isinstance(v, dict):
            return list(v.keys())
        return v


class GenerateProjectRequest(_ApiModel):
    """Body of POST /generate-project."""

    prompt: Optional[str] = None
    project_plan: Optional[ProjectPlan] = Field(default=None, alias="projectPlan")
    current_files: Dict[str, str] = Field(default_factory=dict, alias="currentFiles")
    model: Optional[str] = None
    use_dalle: bool = Field(default=False, alias="useDallE")
    generated_images: Dict[str, str] = Field(default_factory=dict, alias="generatedImages")
    # Omitted by older clients; derived from current_files when absent
    is_initial_prompt: Optional[bool] = Field(default=None, alias="isInitialPrompt")


class ProjectResponse(_ApiModel):
    files: Dict[str, str]
    new_images: Dict[str, str] = Field(default_factory=dict, alias="newImages")
