# wabridge/modules/cache/models.py

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from wabridge.models.api_common import CamelModel

class TagStats(CamelModel):
    tag: str
    cache_keys: List[str] = Field(default_factory=list)
    count: int

class CacheStats(CamelModel):
    tags: List[TagStats]
    total_tags: int
    total_cache_entries: int

class TagFailure(CamelModel):
    tag: str
    error: str

class TagsRevalidation(BaseModel):
    deleted_entries: int = 0
    revalidated_tags: List[str] = Field(default_factory=list)
    failed_tags: List[TagFailure] = Field(default_factory=list)

# --- Revalidation target: exactly one tag or a list of tags ---

class SingleTag(BaseModel):
    kind: Literal["single"] = "single"
    tag: str

class MultipleTags(BaseModel):
    kind: Literal["multiple"] = "multiple"
    tags: List[str]

RevalidationTarget = Annotated[Union[SingleTag, MultipleTags], Field(discriminator="kind")]

# --- API ---

class RevalidateCacheRequest(BaseModel):
    """Loosely typed on purpose: shape errors are reported as 400 after the API key check."""
    tag: Any = None
    tags: Any = None
    api_key: Optional[str] = Field(None, alias="apiKey")

class RevalidateCacheResponse(CamelModel):
    success: bool
    revalidated_tags: List[str]
    deleted_entries: int
    message: str
    failed_tags: Optional[List[TagFailure]] = None

class AllTagsResponse(CamelModel):
    success: bool = True
    tags: List[str]
    count: int

class TagStatsResponse(TagStats):
    success: bool = True

class CacheStatsResponse(CacheStats):
    success: bool = True
