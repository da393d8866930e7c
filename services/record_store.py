"""
Record store - create/update/get/list over the SQL database

Services talk to persistence through this class only, so every write goes
through the collection's marshmallow schema and every failure surfaces as one
of the store errors in error_handling.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from error_handling import CancelledError, DuplicateError, RecordNotFoundError, RecordValidationError
from models import Category, Channel, Provider, db
from schemas import CategoryRecordSchema, ChannelRecordSchema, ProviderRecordSchema

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "providers": (Provider, ProviderRecordSchema),
    "categories": (Category, CategoryRecordSchema),
    "channels": (Channel, ChannelRecordSchema),
}

# Natural keys that must be unique within a collection
UNIQUE_KEYS = {
    "categories": ("provider_id", "external_id"),
    "channels": ("provider_id", "external_id"),
}


class RecordStore:
    """Thin record store over the Flask-SQLAlchemy session"""

    session = db.session

    def create(self, collection: str, record: Dict[str, Any]):
        """
        Validate and insert a record.

        Raises:
            RecordValidationError: payload failed the collection schema
            DuplicateError: a record with the same natural key exists
            CancelledError: the database gave up on the write
        """
        model, schema_class = COLLECTIONS[collection]
        data = self._load(schema_class(), record)
        self._check_references(collection, data)

        unique_key = UNIQUE_KEYS.get(collection)
        if unique_key:
            existing = model.query.filter_by(**{field: data[field] for field in unique_key}).first()
            if existing:
                raise DuplicateError(
                    f"{collection} record with {', '.join(f'{k}={data[k]}' for k in unique_key)} already exists"
                )

        instance = model(**data)
        self.session.add(instance)
        self._commit(collection)
        return instance

    def update(self, collection: str, record_id: int, changes: Dict[str, Any]):
        """Apply a partial update; unknown fields are a validation error"""
        model, schema_class = COLLECTIONS[collection]
        instance = self.session.get(model, record_id)
        if instance is None:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")

        data = self._load(schema_class(partial=True), changes)
        if collection == "channels":
            self._check_references(collection, {"provider_id": instance.provider_id, **data})
        for field, value in data.items():
            setattr(instance, field, value)
        self._commit(collection)
        return instance

    def get_one(self, collection: str, record_id: int, expand: Optional[Iterable[str]] = None):
        """Fetch one record; each name in ``expand`` must resolve to a related record"""
        model, _ = COLLECTIONS[collection]
        instance = self.session.get(model, record_id)
        if instance is None:
            raise RecordNotFoundError(f"{collection} record {record_id} not found")

        for relation in expand or ():
            if getattr(instance, relation, None) is None:
                raise RecordNotFoundError(f"{collection} record {record_id} has no {relation}")
        return instance

    def list_all(self, collection: str, **filters) -> List[Any]:
        model, _ = COLLECTIONS[collection]
        return model.query.filter_by(**filters).order_by(model.id).all()

    @staticmethod
    def _load(schema, record):
        try:
            return schema.load(record)
        except SchemaValidationError as err:
            raise RecordValidationError("Invalid record", details=err.messages) from err

    def _check_references(self, collection, data):
        """A channel's category must belong to the channel's provider"""
        if collection != "channels" or data.get("category_id") is None:
            return
        category = self.session.get(Category, data["category_id"])
        if category is None or category.provider_id != data.get("provider_id"):
            raise RecordValidationError(
                "Category does not belong to the channel's provider",
                details={"category_id": [f"Unknown category {data['category_id']} for this provider"]},
            )

    def _commit(self, collection):
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateError(f"{collection} record violates a unique constraint") from e
        except OperationalError as e:
            self.session.rollback()
            logger.warning(f"Write to {collection} abandoned by the database: {e}")
            raise CancelledError(f"Write to {collection} was cancelled") from e
