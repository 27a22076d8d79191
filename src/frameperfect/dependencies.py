from fastapi import Request

from frameperfect.services.categories import CategorySuggester
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.history import EnhancementHistoryManager
from frameperfect.services.projects import ProjectRegistry


def get_registry(request: Request) -> ProjectRegistry:
    """Retrieve the ProjectRegistry singleton from app state."""
    return request.app.state.registry


def get_frame_store(request: Request) -> FrameStore:
    """Retrieve the FrameStore singleton from app state."""
    return request.app.state.frame_store


def get_history(request: Request) -> EnhancementHistoryManager:
    """Retrieve the EnhancementHistoryManager singleton from app state."""
    return request.app.state.history


def get_suggester(request: Request) -> CategorySuggester:
    """Retrieve the CategorySuggester singleton from app state."""
    return request.app.state.suggester
