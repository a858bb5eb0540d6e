from pydantic import BaseModel


class SaveJobRequest(BaseModel):
    job_id: str
    creator_id: str | None = None


class SavedJobSummary(BaseModel):
    id: str
    title: str
    description: str
    category: str
    budget_type: str
    budget_min: float | None = None
    budget_max: float | None = None
    status: str
    created_at: str
    business_name: str | None = None


class SavedJobResponse(BaseModel):
    id: str
    saved_at: str
    job: SavedJobSummary


class SavedJobListResponse(BaseModel):
    saved_jobs: list[SavedJobResponse]


class SaveJobResponse(BaseModel):
    id: str
    job_id: str
    saved_at: str
    already_saved: bool


class FavoriteRequest(BaseModel):
    creator_id: str
    business_id: str | None = None


class FavoriteCreator(BaseModel):
    id: str
    name: str
    location: str | None = None
    categories: list[str] = []
    rating: float | None = None
    total_reviews: int = 0
    saved_at: str


class FavoriteListResponse(BaseModel):
    favorites: list[FavoriteCreator]


class RemovedResponse(BaseModel):
    success: bool
    removed: bool
