"""
Contact relationships: typed links between two contacts.

Relationship types come from the server grouped into type groups; each group
name maps onto one display category (family, love, friend, work, other).
"""
import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from monica.client.errors import MonicaAPIError, sanitize_for_log
from monica.features.base import RecordViewModel
from monica.models.api import Contact, RelationshipType, RelationshipTypeGroup
from monica.models.records import RelationshipRecord

logger = logging.getLogger(__name__)


class RelationshipCategory(str, Enum):
    FAMILY = "family"
    LOVE = "love"
    FRIEND = "friend"
    WORK = "work"
    OTHER = "other"

    @classmethod
    def from_group_name(cls, name: str) -> "RelationshipCategory":
        name = name.lower()
        if name in ("friend", "friends"):
            return cls.FRIEND
        try:
            return cls(name)
        except ValueError:
            return cls.OTHER


CATEGORY_ORDER = list(RelationshipCategory)


class RelationshipValidationError(Enum):
    SELF_RELATIONSHIP = "Cannot create a relationship with the same contact"
    DUPLICATE_RELATIONSHIP = "This relationship already exists"
    INVALID_RELATIONSHIP_TYPE = "Please select a valid relationship type"

    @property
    def message(self) -> str:
        return self.value


# generic name -> (male, female); anything else displays as-is
GENDERED_NAMES: Dict[str, Tuple[str, str]] = {
    "child": ("son", "daughter"),
    "parent": ("father", "mother"),
    "sibling": ("brother", "sister"),
    "grandchild": ("grandson", "granddaughter"),
    "grandparent": ("grandfather", "grandmother"),
    "uncle/aunt": ("uncle", "aunt"),
    "aunt/uncle": ("uncle", "aunt"),
    "nephew/niece": ("nephew", "niece"),
    "niece/nephew": ("nephew", "niece"),
    "spouse": ("husband", "wife"),
    "ex-spouse": ("ex-husband", "ex-wife"),
    "godparent": ("godfather", "godmother"),
    "godchild": ("godson", "goddaughter"),
    "stepparent": ("stepfather", "stepmother"),
    "stepchild": ("stepson", "stepdaughter"),
    "half-sibling": ("half-brother", "half-sister"),
    "step-sibling": ("stepbrother", "stepsister"),
    "in-law": ("brother-in-law", "sister-in-law"),
}


def gendered_name(name: Optional[str], gender: Optional[str]) -> str:
    if not name:
        return ""
    variants = GENDERED_NAMES.get(name.lower())
    if variants is None or not gender:
        return name
    gender = gender.lower()
    if gender in ("male", "man", "m"):
        return variants[0]
    if gender in ("female", "woman", "f"):
        return variants[1]
    return name


class RelationshipViewModel(RecordViewModel):
    record_cls = RelationshipRecord
    noun = "relationship"

    def __init__(self, client, engine, sync_engine=None):
        super().__init__(client, engine, sync_engine)
        self.relationship_types: List[RelationshipType] = []
        self.relationship_type_groups: List[RelationshipTypeGroup] = []
        self.types_loaded = False
        self.current_contact_id: Optional[int] = None
        self.validation_error: Optional[RelationshipValidationError] = None
        self.search_results: List[Contact] = []
        self.is_searching = False

    @property
    def relationships(self) -> List[RelationshipRecord]:
        return self.items

    # ── Relationship types ────────────────────────────────────────────────────

    async def load_relationship_types_if_needed(self) -> None:
        if self.types_loaded:
            return
        try:
            types, groups = await asyncio.gather(
                self.client.list_relationship_types(),
                self.client.list_relationship_type_groups(),
            )
        except MonicaAPIError as exc:
            self.error_message = f"Failed to load relationship types: {exc.message}"
            logger.warning("Loading relationship types failed: %s", sanitize_for_log(exc.message))
            return
        self.relationship_types = list(types)
        self.relationship_type_groups = list(groups)
        self.types_loaded = True

    async def reload_relationship_types(self) -> None:
        self.types_loaded = False
        await self.load_relationship_types_if_needed()

    def _type(self, type_id: int) -> Optional[RelationshipType]:
        return next((t for t in self.relationship_types if t.id == type_id), None)

    def category_for(self, relationship_type: Optional[RelationshipType]) -> RelationshipCategory:
        if relationship_type is None:
            return RelationshipCategory.OTHER
        group = next(
            (g for g in self.relationship_type_groups if g.id == relationship_type.relationship_type_group_id),
            None,
        )
        if group is None:
            return RelationshipCategory.OTHER
        return RelationshipCategory.from_group_name(group.name)

    @property
    def grouped_relationship_types(self) -> List[Tuple[RelationshipCategory, List[RelationshipType]]]:
        by_group: Dict[Optional[int], List[RelationshipType]] = {}
        for relationship_type in self.relationship_types:
            by_group.setdefault(relationship_type.relationship_type_group_id, []).append(relationship_type)

        result = []
        for group in self.relationship_type_groups:
            types = by_group.get(group.id)
            if types:
                category = RelationshipCategory.from_group_name(group.name)
                result.append((category, sorted(types, key=lambda t: t.name)))
        result.sort(key=lambda pair: CATEGORY_ORDER.index(pair[0]))
        return result

    @property
    def grouped_relationships(self) -> List[Tuple[RelationshipCategory, List[RelationshipRecord]]]:
        grouped: Dict[RelationshipCategory, List[RelationshipRecord]] = {}
        for relationship in self.items:
            category = self.category_for(self._type(relationship.relationship_type_id))
            grouped.setdefault(category, []).append(relationship)
        return [(c, grouped[c]) for c in CATEGORY_ORDER if grouped.get(c)]

    def display_name(self, relationship_type: RelationshipType, gender: Optional[str]) -> str:
        return gendered_name(relationship_type.name, gender)

    def reverse_display_name(self, relationship_type: RelationshipType, gender: Optional[str]) -> str:
        return gendered_name(relationship_type.name_reverse_relationship, gender)

    # ── Relationships ─────────────────────────────────────────────────────────

    async def load_relationships(self, contact_id: int) -> None:
        self.current_contact_id = contact_id
        await self._fetch(lambda: self.client.list_relationships(contact_id), contact_id=contact_id)

    async def refresh_relationships(self) -> None:
        if self.current_contact_id is not None:
            await self.load_relationships(self.current_contact_id)

    def has_existing_relationship(self, contact_id: int) -> bool:
        return any(r.of_contact_id == contact_id for r in self.items)

    def _is_duplicate(self, source_id: int, target_id: int, type_id: int) -> bool:
        return any(
            r.contact_id == source_id and r.of_contact_id == target_id and r.relationship_type_id == type_id
            for r in self.items
        )

    async def create_relationship(
        self,
        source_contact_id: int,
        target_contact_id: int,
        relationship_type_id: int,
        target_contact_name: Optional[str] = None,
    ) -> Optional[RelationshipRecord]:
        """Returns the new row, or None if validation or the push failed."""
        self.validation_error = None
        if source_contact_id == target_contact_id:
            self.validation_error = RelationshipValidationError.SELF_RELATIONSHIP
            return None
        if self._is_duplicate(source_contact_id, target_contact_id, relationship_type_id):
            self.validation_error = RelationshipValidationError.DUPLICATE_RELATIONSHIP
            return None
        relationship_type = self._type(relationship_type_id)
        if relationship_type is None:
            self.validation_error = RelationshipValidationError.INVALID_RELATIONSHIP_TYPE
            return None

        return await self._create(
            contact_id=source_contact_id,
            of_contact_id=target_contact_id,
            relationship_type_id=relationship_type_id,
            relationship_type_name=relationship_type.name,
            of_contact_name=target_contact_name,
        )

    async def update_relationship(self, relationship: RelationshipRecord, relationship_type_id: int) -> bool:
        self.validation_error = None
        relationship_type = self._type(relationship_type_id)
        if relationship_type is None:
            self.validation_error = RelationshipValidationError.INVALID_RELATIONSHIP_TYPE
            return False
        return await self._update(
            relationship,
            relationship_type_id=relationship_type_id,
            relationship_type_name=relationship_type.name,
        )

    async def delete_relationship(self, relationship: RelationshipRecord) -> bool:
        return await self._delete(relationship)

    # ── Contact search ────────────────────────────────────────────────────────

    async def search_contacts(self, query: str, exclude_contact_id: Optional[int] = None) -> None:
        if not query.strip():
            self.search_results = []
            return
        self.is_searching = True
        try:
            results = await self.client.search_contacts(query)
        except MonicaAPIError as exc:
            logger.warning("Contact search failed: %s", sanitize_for_log(exc.message))
            results = []
        finally:
            self.is_searching = False
        if exclude_contact_id is not None:
            results = [c for c in results if c.id != exclude_contact_id]
        self.search_results = results

    def clear_search_results(self) -> None:
        self.search_results = []

    def clear_errors(self) -> None:
        self.error_message = None
        self.validation_error = None
