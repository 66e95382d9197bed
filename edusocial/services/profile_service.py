import logging
from typing import Any, Dict, List, Optional

from edusocial.exceptions import NotFound, ValidationFailed
from edusocial.models.schemas import CategoryTaxonomy, Profile, SelectedCategories
from edusocial.repositories import db_service
from edusocial.services import category_service

logger = logging.getLogger(__name__)


def get_profile(user_id: str, taxonomy: Optional[CategoryTaxonomy] = None) -> Profile:
    """
    Load a profile. When a taxonomy is given the saved category selection is
    pruned against it so stale subcategories never reach the caller.
    """
    row = db_service.get_profile(user_id)
    if row is None:
        raise NotFound(f"Profil bulunamadı: {user_id}")
    profile = Profile(**row)
    if taxonomy is not None:
        profile.exam_categories = category_service.prune_selection(taxonomy, profile.exam_categories)
    return profile


def update_profile(user_id: str, display_name: Optional[str] = None, bio: Optional[str] = None,
                   avatar_url: Optional[str] = None) -> Profile:
    changes: Dict[str, Any] = {}
    if display_name is not None:
        display_name = display_name.strip()
        if not display_name:
            raise ValidationFailed("Görünen ad boş olamaz")
        changes["display_name"] = display_name
    if bio is not None:
        changes["bio"] = bio.strip()
    if avatar_url is not None:
        changes["avatar_url"] = avatar_url

    if not changes:
        return get_profile(user_id)

    row = db_service.update_profile(user_id, changes)
    if row is None:
        raise NotFound(f"Profil bulunamadı: {user_id}")
    return Profile(**row)


def save_exam_categories(user_id: str, selection: SelectedCategories) -> SelectedCategories:
    if db_service.get_profile(user_id) is None:
        raise NotFound(f"Profil bulunamadı: {user_id}")
    return category_service.save_profile_categories(user_id, selection)


def interest_keys(profile: Profile) -> List[str]:
    """Main categories of the saved selection; list-shaped legacy values are returned as-is."""
    value = profile.exam_categories
    if not value:
        return []
    if isinstance(value, dict):
        return list(value.keys())
    if isinstance(value, list):
        return [str(v) for v in value]
    return []
