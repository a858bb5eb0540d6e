from marketplace.models.user import User, AuthSession
from marketplace.models.creator import Creator
from marketplace.models.business import Business
from marketplace.models.job import Job
from marketplace.models.application import Application
from marketplace.models.invitation import Invitation
from marketplace.models.message import Message
from marketplace.models.review import Review
from marketplace.models.webhook_event import WebhookEvent
from marketplace.models.view_marker import ViewMarker
from marketplace.models.bookmark import SavedCreator, SavedJob

__all__ = [
    "User", "AuthSession", "Creator", "Business", "Job", "Application",
    "Invitation", "Message", "Review", "WebhookEvent", "ViewMarker",
    "SavedJob", "SavedCreator",
]
