"""MongoDB index management.

Indexes are declared as IndexSpec values and reconciled at startup: an
existing index that clashes with a declaration (same name with other keys
or options, or same keys under another name) is dropped and rebuilt.
"""

from dataclasses import dataclass
from logging import getLogger

from pymongo.errors import PyMongoError

logger = getLogger(__name__)


@dataclass(frozen=True)
class IndexSpec:
    keys: tuple[tuple[str, int], ...]
    name: str
    unique: bool = False
    sparse: bool = False

    def options(self) -> dict:
        options = {'name': self.name}
        if self.unique:
            options['unique'] = True
        if self.sparse:
            options['sparse'] = True
        return options

    def clashes_with(self, name: str, info: dict) -> bool:
        same_keys = dict(info.get('key', [])) == dict(self.keys)
        same_options = (
            bool(info.get('unique')) == self.unique
            and bool(info.get('sparse')) == self.sparse
        )
        if name == self.name:
            return not (same_keys and same_options)
        return same_keys


def apply_index(collection, index: IndexSpec) -> None:
    """Create `index`, replacing any clashing index."""
    for name, info in collection.index_information().items():
        if name == '_id_' or not index.clashes_with(name, info):
            continue
        logger.warning("Dropping clashing index", extra={"index": name, "wanted": index.name})
        collection.drop_index(name)
    collection.create_index(list(index.keys), **index.options())


def apply_indexes(collection, indexes: list[IndexSpec]) -> bool:
    """Apply every index definition; False if any of them failed."""
    ok = True
    for index in indexes:
        try:
            apply_index(collection, index)
        except PyMongoError as e:
            logger.error("Failed to create index", extra={"index": index.name, "error": str(e)})
            ok = False
    return ok


def ensure_all_indexes(db) -> bool:
    """Ensure indexes for all owned collections. Called at app startup."""
    from adapter.mongodb.user_repository import MongoUserRepository

    results = [
        MongoUserRepository(db).ensure_indexes(),
    ]
    return all(results)
