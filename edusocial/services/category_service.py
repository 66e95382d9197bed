"""
Category Taxonomy & Selection

Groups the flat ``exam_categories`` rows into a two-level taxonomy
(main category -> ordered subcategories) and manages a user's selection of
it. Selection values never map a main category to an empty list; the key is
removed instead.

The toggle functions are pure: they return a new selection and leave their
inputs untouched. ``CategorySelector`` wraps them with the expansion state of
the selector and the explicit refresh / commit entry points.
"""
import logging
from typing import Any, Iterable, List, Mapping, Optional, Set

from edusocial.exceptions import DataUnavailable, NotFound, ValidationFailed
from edusocial.models.schemas import CategoryEntry, CategoryTaxonomy, SelectedCategories
from edusocial.repositories import db_service
from edusocial.services.admin_service import require_admin

logger = logging.getLogger(__name__)


def group_entries(entries: Iterable[Any]) -> CategoryTaxonomy:
    """
    Group category rows by main category.

    Args:
        entries: CategoryEntry models or row dicts with main_category/sub_category

    Returns:
        Taxonomy ordered by main category, each value ordered by subcategory.
        Duplicate (main, sub) pairs appear once.
    """
    pairs = set()
    for entry in entries:
        if isinstance(entry, Mapping):
            entry = CategoryEntry(**entry)
        pairs.add((entry.main_category, entry.sub_category))

    taxonomy: CategoryTaxonomy = {}
    for main_category, sub_category in sorted(pairs):
        taxonomy.setdefault(main_category, []).append(sub_category)
    return taxonomy


def load_taxonomy() -> CategoryTaxonomy:
    """
    Fetch all category rows and group them into a taxonomy.

    Raises:
        DataUnavailable: If the fetch fails (after one retry)
    """
    try:
        rows = db_service.get_exam_categories()
    except Exception as e:
        logger.error(f"Error loading category taxonomy: {e}")
        raise DataUnavailable("Kategoriler yüklenemedi")
    return group_entries(rows)


def load_taxonomy_or_empty() -> tuple:
    """Load the taxonomy, degrading to an empty one with a warning message."""
    try:
        return load_taxonomy(), None
    except DataUnavailable as e:
        logger.warning("Falling back to an empty category taxonomy")
        return {}, e.message


def _copy(selection: Mapping[str, List[str]]) -> SelectedCategories:
    return {main: list(subs) for main, subs in selection.items()}


def is_main_selected(selection: Mapping[str, List[str]], main_category: str) -> bool:
    return bool(selection.get(main_category))


def toggle_main_category(taxonomy: CategoryTaxonomy, selection: Mapping[str, List[str]], main_category: str) -> SelectedCategories:
    """
    Select every subcategory of ``main_category`` or deselect it entirely.

    A main category without subcategories has nothing to select and leaves
    the selection unchanged.
    """
    result = _copy(selection)
    if is_main_selected(result, main_category):
        del result[main_category]
        return result

    result.pop(main_category, None)
    subcategories = taxonomy.get(main_category, [])
    if subcategories:
        result[main_category] = list(subcategories)
    return result


def toggle_sub_category(selection: Mapping[str, List[str]], main_category: str, sub_category: str) -> SelectedCategories:
    """Flip membership of ``sub_category`` under ``main_category``."""
    result = _copy(selection)
    current = result.get(main_category, [])

    if sub_category in current:
        remaining = [s for s in current if s != sub_category]
        if remaining:
            result[main_category] = remaining
        else:
            result.pop(main_category, None)
    else:
        result[main_category] = current + [sub_category]
    return result


def is_fully_selected(taxonomy: CategoryTaxonomy, selection: Mapping[str, List[str]], main_category: str) -> bool:
    all_subcategories = taxonomy.get(main_category, [])
    selected = set(selection.get(main_category, []))
    return bool(all_subcategories) and all(sub in selected for sub in all_subcategories)


def prune_selection(taxonomy: CategoryTaxonomy, selection: Optional[Mapping[str, Any]]) -> SelectedCategories:
    """
    Drop subcategories that no longer exist in the taxonomy.

    Keys left without subcategories are removed. Non-list values (legacy
    profile data) are treated as empty.
    """
    result: SelectedCategories = {}
    if not isinstance(selection, Mapping):
        return result

    for main_category, subcategories in selection.items():
        if not isinstance(subcategories, list):
            continue
        known = set(taxonomy.get(main_category, []))
        kept = []
        for sub in subcategories:
            if sub in known and sub not in kept:
                kept.append(sub)
        if kept:
            result[main_category] = kept
        elif subcategories:
            logger.info(f"Pruned stale selection for main category '{main_category}'")
    return result


def validate_selection(taxonomy: CategoryTaxonomy, selection: Mapping[str, List[str]]) -> None:
    """
    Check a selection against the taxonomy before it is written.

    Raises:
        ValidationFailed: On an unknown main/subcategory or an empty entry
    """
    for main_category, subcategories in selection.items():
        if main_category not in taxonomy:
            raise ValidationFailed(f"Bilinmeyen kategori: {main_category}")
        if not subcategories:
            raise ValidationFailed(f"'{main_category}' için alt kategori seçilmedi")
        known = set(taxonomy[main_category])
        unknown = [sub for sub in subcategories if sub not in known]
        if unknown:
            raise ValidationFailed(f"Bilinmeyen alt kategori: {main_category} / {', '.join(unknown)}")


def validate_tags(taxonomy: CategoryTaxonomy, tags: Iterable[str]) -> List[str]:
    """Check a post tag list against the taxonomy; returns the de-duplicated tags in order."""
    known = {sub for subs in taxonomy.values() for sub in subs}
    result = []
    for tag in tags:
        if tag not in known:
            raise ValidationFailed(f"Bilinmeyen alt kategori: {tag}")
        if tag not in result:
            result.append(tag)
    return result


def selection_to_tags(selection: Mapping[str, List[str]]) -> List[str]:
    """Flatten a selection into the tag list stored on a post."""
    tags: List[str] = []
    for subcategories in selection.values():
        for sub in subcategories:
            if sub not in tags:
                tags.append(sub)
    return tags


def save_profile_categories(user_id: str, selection: Mapping[str, List[str]], taxonomy: Optional[CategoryTaxonomy] = None) -> SelectedCategories:
    """
    Persist a selection to the user's profile.

    Raises:
        ValidationFailed: If the selection does not match the taxonomy
        DataUnavailable: If the taxonomy cannot be loaded for validation
    """
    if taxonomy is None:
        taxonomy = load_taxonomy()
    validate_selection(taxonomy, selection)
    value = _copy(selection)
    db_service.update_profile(user_id, {"exam_categories": value})
    logger.info(f"Saved {len(value)} main categories to profile {user_id}")
    return value


def _clean_entry_fields(main_category: Optional[str], sub_category: Optional[str]) -> tuple:
    main_category = (main_category or "").strip()
    sub_category = (sub_category or "").strip()
    if not main_category or not sub_category:
        raise ValidationFailed("Lütfen tüm alanları doldurun")
    return main_category, sub_category


def create_category(admin_id: str, main_category: str, sub_category: str) -> CategoryEntry:
    """
    Add a category row (admin only).

    Raises:
        Unauthorized: If admin_id lacks the admin role
        ValidationFailed: If either field is blank
        ConflictIgnored: If the (main, sub) pair already exists
    """
    require_admin(admin_id)
    main_category, sub_category = _clean_entry_fields(main_category, sub_category)
    row = db_service.insert_exam_category(main_category, sub_category, created_by=admin_id)
    return CategoryEntry(**row)


def update_category(admin_id: str, category_id: str, main_category: str, sub_category: str) -> CategoryEntry:
    require_admin(admin_id)
    main_category, sub_category = _clean_entry_fields(main_category, sub_category)
    row = db_service.update_exam_category(category_id, main_category, sub_category)
    if not row:
        raise NotFound(f"Kategori bulunamadı: {category_id}")
    return CategoryEntry(**row)


def delete_category(admin_id: str, category_id: str) -> None:
    require_admin(admin_id)
    db_service.delete_exam_category(category_id)


class CategorySelector:
    """
    Working state of one category selector.

    Holds the taxonomy, the uncommitted selection and which main categories
    are expanded. Nothing is written until one of the commit methods is
    called.
    """

    def __init__(self, selection: Optional[Mapping[str, List[str]]] = None, taxonomy: Optional[CategoryTaxonomy] = None):
        self.taxonomy: CategoryTaxonomy = dict(taxonomy or {})
        self.selection: SelectedCategories = _copy(selection or {})
        self.expanded: Set[str] = set(self.selection)
        self.warning: Optional[str] = None

    def refresh(self) -> CategoryTaxonomy:
        """Reload the taxonomy and prune selections it no longer contains."""
        self.taxonomy, self.warning = load_taxonomy_or_empty()
        if self.warning is None:
            self.selection = prune_selection(self.taxonomy, self.selection)
            self.expanded &= set(self.taxonomy)
        return self.taxonomy

    def toggle_main(self, main_category: str) -> SelectedCategories:
        was_selected = is_main_selected(self.selection, main_category)
        self.selection = toggle_main_category(self.taxonomy, self.selection, main_category)

        if was_selected:
            self.expanded.discard(main_category)
        elif is_main_selected(self.selection, main_category):
            self.expanded.add(main_category)
        elif main_category in self.expanded:
            # Nothing to select; only the expansion flips
            self.expanded.discard(main_category)
        else:
            self.expanded.add(main_category)
        return self.selection

    def toggle_sub(self, main_category: str, sub_category: str) -> SelectedCategories:
        self.selection = toggle_sub_category(self.selection, main_category, sub_category)
        return self.selection

    def is_fully_selected(self, main_category: str) -> bool:
        return is_fully_selected(self.taxonomy, self.selection, main_category)

    def is_expanded(self, main_category: str) -> bool:
        return main_category in self.expanded

    def commit_to_profile(self, user_id: str) -> SelectedCategories:
        return save_profile_categories(user_id, self.selection, self.taxonomy)

    def commit_to_post_tags(self) -> List[str]:
        validate_selection(self.taxonomy, self.selection)
        return selection_to_tags(self.selection)
