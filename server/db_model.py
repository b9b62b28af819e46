from dataclasses import dataclass, field
from typing import Any, Annotated, Dict, List, Optional, Tuple, get_args, get_origin, get_type_hints

from errors import InvalidDocument
import index_keys

@dataclass(frozen=True)
class Indexed:
    """Marker for required string fields that get one id set per distinct value."""
    pass

@dataclass(frozen=True)
class TagIndexed:
    """Marker for a list-of-objects field indexed by each object's `name_attr`."""
    name_attr: str = "name"

# Models describe the stored documents; documents themselves stay plain dicts.

@dataclass
class Tag:
    name: str
    id: Optional[int] = None

@dataclass
class Pet:
    id: int
    status: Annotated[str, Indexed]
    name: Optional[str] = None
    category: Optional[Dict[str, Any]] = None
    photoUrls: List[str] = field(default_factory=list)
    tags: Annotated[List[Tag], TagIndexed] = field(default_factory=list)

@dataclass
class User:
    id: int
    username: Annotated[str, Indexed]
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    userStatus: Optional[int] = None

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)

@dataclass(frozen=True)
class CollectionSchema:
    name: str
    indexed_fields: Tuple[str, ...] = ()
    tag_field: Optional[str] = None
    tag_name_attr: str = "name"

    @classmethod
    def from_model(cls, name: str, model: type) -> "CollectionSchema":
        """Reads the Indexed / TagIndexed markers off a model's annotations."""
        indexed = []
        tag_field = None
        tag_name_attr = "name"
        hints = get_type_hints(model, include_extras=True)
        for attr, hint in hints.items():
            if get_origin(hint) is not Annotated:
                continue
            for m in get_args(hint)[1:]:
                if m is Indexed or isinstance(m, Indexed):
                    indexed.append(attr)
                elif m is TagIndexed or isinstance(m, TagIndexed):
                    tag_field = attr
                    tag_name_attr = m.name_attr if isinstance(m, TagIndexed) else "name"
        return cls(name=name, indexed_fields=tuple(indexed), tag_field=tag_field, tag_name_attr=tag_name_attr)

    def validate(self, doc: Any):
        """
        Checks the minimal shape needed to index a document: an integer `id`,
        every indexed field as a string and, when present, a tags list of
        objects carrying a string name.  Raises InvalidDocument.
        """
        if not isinstance(doc, dict):
            raise InvalidDocument(f"A {self.name} document must be an object")
        if "id" not in doc:
            raise InvalidDocument(f"Missing required field 'id' in {self.name} document")
        if not _is_int(doc["id"]):
            raise InvalidDocument(f"Field 'id' must be an integer, got {type(doc['id']).__name__}")

        for attr in self.indexed_fields:
            if attr not in doc:
                raise InvalidDocument(f"Missing required field '{attr}' in {self.name} document")
            if not isinstance(doc[attr], str):
                raise InvalidDocument(f"Field '{attr}' must be a string, got {type(doc[attr]).__name__}")

        if self.tag_field and doc.get(self.tag_field) is not None:
            tags = doc[self.tag_field]
            if not isinstance(tags, list):
                raise InvalidDocument(f"Field '{self.tag_field}' must be an array")
            for i, tag in enumerate(tags):
                if not isinstance(tag, dict) or not isinstance(tag.get(self.tag_name_attr), str):
                    raise InvalidDocument(
                        f"{self.tag_field}[{i}] must be an object with a string '{self.tag_name_attr}'"
                    )

    def scalar_values(self, doc: Dict[str, Any]) -> List[Tuple[str, str]]:
        """(field, value) pairs for indexed fields that hold a string. Missing ones are skipped."""
        return [(attr, doc[attr]) for attr in self.indexed_fields if isinstance(doc.get(attr), str)]

    def tag_names(self, doc: Dict[str, Any]) -> List[str]:
        """Distinct tag names in document order; malformed entries are skipped."""
        if not self.tag_field:
            return []
        tags = doc.get(self.tag_field)
        if not isinstance(tags, list):
            return []
        names = []
        for tag in tags:
            name = tag.get(self.tag_name_attr) if isinstance(tag, dict) else None
            if isinstance(name, str) and name not in names:
                names.append(name)
        return names

    def index_keys_for(self, doc: Dict[str, Any]) -> List[str]:
        """Every field-index key the document's current values belong to."""
        keys = [index_keys.field_index_key(self.name, attr, value) for attr, value in self.scalar_values(doc)]
        keys += [index_keys.field_index_key(self.name, self.tag_field, name) for name in self.tag_names(doc)]
        return keys

PETS = CollectionSchema.from_model("pets", Pet)
USERS = CollectionSchema.from_model("users", User)

DEFAULT_SCHEMAS: Dict[str, CollectionSchema] = {
    PETS.name: PETS,
    USERS.name: USERS,
}

def schema_for(name: str, schemas: Optional[Dict[str, CollectionSchema]] = None) -> CollectionSchema:
    """Registered schema for a collection, or an id-only schema for unknown names."""
    schemas = DEFAULT_SCHEMAS if schemas is None else schemas
    return schemas.get(name) or CollectionSchema(name=name)
