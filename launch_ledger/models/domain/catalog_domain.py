from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class CatalogApp:
    """Read-only view of a catalog_apps row as shown on the launch page."""

    id: str
    name: str
    tagline: str | None
    website_url: str | None
    logo_url: str | None
    is_premium: bool
    total_votes: int
    created_at: datetime

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tagline": self.tagline,
            "websiteUrl": self.website_url,
            "logoUrl": self.logo_url,
            "isPremium": self.is_premium,
            "totalVotes": self.total_votes,
        }
