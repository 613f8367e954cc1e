# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
DynamoDB stores for documents, feedback and learned patterns.

All three stores share one table keyed by PK/SK:

    documents   PK = doc#<document_id>          SK = document
    feedback    PK = feedback#<document_id>     SK = user#<submitter_id>
                GSI1PK = business#<business_id>#<category>, GSI1SK = updated_at
    patterns    PK = pattern#<business_id>      SK = category#<category>

Floats are stored as Decimal. botocore ClientErrors are wrapped into
StoreError, failed pattern version checks into PatternConflictError.
"""

import logging
import os
import uuid
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import Binary
from botocore.exceptions import ClientError

from vat_common.learning.models import FeedbackKind, FeedbackRecord, LearningPattern
from vat_common.models import Document, DocumentCategory
from vat_common.stores.base import DocumentStore, FeedbackStore, PatternStore
from vat_common.stores.errors import DocumentNotFoundError, PatternConflictError, StoreError
from vat_common.utils import convert_decimals, convert_floats_to_decimal, utc_now_iso

logger = logging.getLogger(__name__)

TABLE_NAME_ENV = "VAT_TABLE_NAME"
FEEDBACK_INDEX = "GSI1"

DOCUMENT_ENTITY = "document"
FEEDBACK_ENTITY = "feedback"
PATTERN_ENTITY = "pattern"

# Attributes describing the item rather than the record
_KEY_ATTRIBUTES = ("PK", "SK", "GSI1PK", "GSI1SK", "entity_type")


def _strip_keys(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in convert_decimals(item).items() if k not in _KEY_ATTRIBUTES}


class DynamoDBTableStore:
    """Shared table handling for the DynamoDB stores."""

    def __init__(self, table_name: Optional[str] = None, region: Optional[str] = None, table=None):
        """
        Initialize the store.

        Args:
            table_name: Optional table name, defaults to the VAT_TABLE_NAME environment variable
            region: Optional AWS region, defaults to the AWS_REGION environment variable
            table: Optional boto3 Table resource, mainly for tests
        """
        if table is not None:
            self.table = table
            self.table_name = table_name or getattr(table, "name", None)
            return

        self.table_name = table_name or os.environ.get(TABLE_NAME_ENV)
        if not self.table_name:
            raise ValueError(
                f"Table name not provided. Either set {TABLE_NAME_ENV} "
                "environment variable or provide table_name parameter."
            )
        region = region or os.environ.get("AWS_REGION")
        dynamodb = boto3.resource("dynamodb", region_name=region)
        self.table = dynamodb.Table(self.table_name)
        logger.info(f"Initialized {self.__class__.__name__} with table: {self.table_name}")

    def _store_error(self, operation: str, error: ClientError) -> StoreError:
        error_code = error.response.get("Error", {}).get("Code", "Unknown")
        logger.error(f"DynamoDB {operation} failed on {self.table_name} ({error_code}): {error}")
        return StoreError(f"DynamoDB {operation} failed: {error_code}", operation=operation)

    def _query_all(self, limit: Optional[int] = None, **kwargs) -> List[Dict[str, Any]]:
        """Run a query, following LastEvaluatedKey until limit items are collected."""
        items: List[Dict[str, Any]] = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key or (limit is not None and len(items) >= limit):
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items[:limit] if limit is not None else items

    def _scan_all(self, limit: Optional[int] = None, **kwargs) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        while True:
            response = self.table.scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key or (limit is not None and len(items) >= limit):
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items[:limit] if limit is not None else items


class DynamoDBDocumentStore(DynamoDBTableStore, DocumentStore):
    @staticmethod
    def _key(document_id: str) -> Dict[str, str]:
        return {"PK": f"doc#{document_id}", "SK": DOCUMENT_ENTITY}

    def get_document(self, document_id: str) -> Document:
        try:
            response = self.table.get_item(Key=self._key(document_id))
        except ClientError as e:
            raise self._store_error("get_document", e) from e

        item = response.get("Item")
        if not item:
            raise DocumentNotFoundError(document_id)

        data = _strip_keys(item)
        content = data.get("content")
        if isinstance(content, Binary):
            data["content"] = content.value
        return Document.from_dict(data)

    def put_document(self, document: Document) -> Document:
        item = convert_floats_to_decimal(document.to_dict(include_content=True))
        item.update(self._key(document.id))
        item["entity_type"] = DOCUMENT_ENTITY
        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            raise self._store_error("put_document", e) from e
        logger.debug(f"Stored document {document.id}")
        return document

    def update_extraction(self, document: Document) -> Document:
        values = convert_floats_to_decimal(
            {
                ":status": document.status.value,
                ":processed_time": document.processed_time,
                ":sales_vat": list(document.sales_vat),
                ":purchase_vat": list(document.purchase_vat),
                ":confidence": float(document.confidence),
                ":extraction_method": document.extraction_method,
                ":errors": list(document.errors),
            }
        )
        try:
            self.table.update_item(
                Key=self._key(document.id),
                UpdateExpression=(
                    "SET #status = :status, processed_time = :processed_time, "
                    "sales_vat = :sales_vat, purchase_vat = :purchase_vat, "
                    "confidence = :confidence, extraction_method = :extraction_method, "
                    "#errors = :errors"
                ),
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeNames={"#status": "status", "#errors": "errors"},
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise DocumentNotFoundError(document.id) from e
            raise self._store_error("update_extraction", e) from e
        logger.debug(f"Updated extraction fields of document {document.id}")
        return document


class DynamoDBFeedbackStore(DynamoDBTableStore, FeedbackStore):
    @staticmethod
    def _key(document_id: str, submitter_id: str) -> Dict[str, str]:
        return {"PK": f"feedback#{document_id}", "SK": f"user#{submitter_id}"}

    @staticmethod
    def _index_key(business_id: str, category: DocumentCategory) -> str:
        return f"business#{business_id}#{category.value}"

    def upsert_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        data = record.to_dict()
        data.update(
            {
                "was_processed": False,
                "improvement_made": False,
                "processed_at": None,
                "entity_type": FEEDBACK_ENTITY,
                "GSI1PK": self._index_key(record.business_id, record.document_category),
                "GSI1SK": record.updated_at or utc_now_iso(),
            }
        )
        # First submission values survive a resubmission
        keep_first = {"id": data.pop("id") or str(uuid.uuid4()), "created_at": data.pop("created_at")}

        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        assignments = []
        for i, (name, value) in enumerate(list(data.items()) + list(keep_first.items())):
            names[f"#a{i}"] = name
            values[f":v{i}"] = value
            if name in keep_first:
                assignments.append(f"#a{i} = if_not_exists(#a{i}, :v{i})")
            else:
                assignments.append(f"#a{i} = :v{i}")

        try:
            response = self.table.update_item(
                Key=self._key(record.document_id, record.submitter_id),
                UpdateExpression="SET " + ", ".join(assignments),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=convert_floats_to_decimal(values),
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            raise self._store_error("upsert_feedback", e) from e

        stored = FeedbackRecord.from_dict(_strip_keys(response.get("Attributes", {})))
        logger.debug(f"Stored feedback {stored.id} for {record.key}")
        return stored

    def get_feedback(self, document_id: str, submitter_id: str) -> Optional[FeedbackRecord]:
        try:
            response = self.table.get_item(Key=self._key(document_id, submitter_id))
        except ClientError as e:
            raise self._store_error("get_feedback", e) from e
        item = response.get("Item")
        return FeedbackRecord.from_dict(_strip_keys(item)) if item else None

    def mark_processed(
        self, document_id: str, submitter_id: str, processed_at: str, improvement_made: bool = True
    ) -> None:
        try:
            self.table.update_item(
                Key=self._key(document_id, submitter_id),
                UpdateExpression=(
                    "SET was_processed = :processed, improvement_made = :improved, "
                    "processed_at = :processed_at"
                ),
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeValues={
                    ":processed": True,
                    ":improved": improvement_made,
                    ":processed_at": processed_at,
                },
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(f"No feedback to mark processed for {(document_id, submitter_id)}")
                return
            raise self._store_error("mark_processed", e) from e

    def list_unprocessed(self, limit: int = 25) -> List[FeedbackRecord]:
        try:
            items = self._scan_all(
                FilterExpression=Attr("entity_type").eq(FEEDBACK_ENTITY)
                & Attr("was_processed").eq(False),
            )
        except ClientError as e:
            raise self._store_error("list_unprocessed", e) from e
        records = [FeedbackRecord.from_dict(_strip_keys(item)) for item in items]
        records.sort(key=lambda r: r.updated_at or "")
        return records[:limit]

    def list_recent_corrections(
        self, business_id: str, category: DocumentCategory, limit: int = 5
    ) -> List[FeedbackRecord]:
        try:
            items = self._query_all(
                limit=limit,
                IndexName=FEEDBACK_INDEX,
                KeyConditionExpression=Key("GSI1PK").eq(self._index_key(business_id, category)),
                FilterExpression=Attr("was_processed").eq(True)
                & Attr("kind").is_in(
                    [FeedbackKind.INCORRECT.value, FeedbackKind.PARTIALLY_CORRECT.value]
                ),
                ScanIndexForward=False,
            )
        except ClientError as e:
            raise self._store_error("list_recent_corrections", e) from e
        return [FeedbackRecord.from_dict(_strip_keys(item)) for item in items]

    def list_feedback(
        self, business_id: Optional[str] = None, document_id: Optional[str] = None
    ) -> List[FeedbackRecord]:
        try:
            if document_id is not None:
                items = self._query_all(
                    KeyConditionExpression=Key("PK").eq(f"feedback#{document_id}")
                )
            else:
                condition = Attr("entity_type").eq(FEEDBACK_ENTITY)
                if business_id is not None:
                    condition = condition & Attr("business_id").eq(business_id)
                items = self._scan_all(FilterExpression=condition)
        except ClientError as e:
            raise self._store_error("list_feedback", e) from e

        records = [FeedbackRecord.from_dict(_strip_keys(item)) for item in items]
        if business_id is not None:
            records = [r for r in records if r.business_id == business_id]
        records.sort(key=lambda r: r.updated_at or "", reverse=True)
        return records


class DynamoDBPatternStore(DynamoDBTableStore, PatternStore):
    @staticmethod
    def _key(business_id: str, category: DocumentCategory) -> Dict[str, str]:
        return {"PK": f"pattern#{business_id}", "SK": f"category#{category.value}"}

    def get_pattern(self, business_id: str, category: DocumentCategory) -> Optional[LearningPattern]:
        try:
            response = self.table.get_item(Key=self._key(business_id, category))
        except ClientError as e:
            raise self._store_error("get_pattern", e) from e
        item = response.get("Item")
        return LearningPattern.from_dict(_strip_keys(item)) if item else None

    def save_pattern(
        self, pattern: LearningPattern, expected_version: Optional[int]
    ) -> LearningPattern:
        new_version = (expected_version or 0) + 1
        data = pattern.to_dict()
        data["version"] = new_version
        item = convert_floats_to_decimal(data)
        item.update(self._key(pattern.business_id, pattern.category))
        item["entity_type"] = PATTERN_ENTITY

        if expected_version is None:
            condition = {"ConditionExpression": "attribute_not_exists(PK)"}
        else:
            condition = {
                "ConditionExpression": "#version = :expected",
                "ExpressionAttributeNames": {"#version": "version"},
                "ExpressionAttributeValues": {":expected": expected_version},
            }

        try:
            self.table.put_item(Item=item, **condition)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(
                    f"Version conflict saving pattern {pattern.key}, expected {expected_version}"
                )
                raise PatternConflictError(
                    pattern.business_id, pattern.category.value, expected_version
                ) from e
            raise self._store_error("save_pattern", e) from e

        return LearningPattern.from_dict(data)

    def list_patterns(
        self, business_id: str, category: Optional[DocumentCategory] = None
    ) -> List[LearningPattern]:
        if category is not None:
            pattern = self.get_pattern(business_id, category)
            return [pattern] if pattern else []
        try:
            items = self._query_all(
                KeyConditionExpression=Key("PK").eq(f"pattern#{business_id}")
                & Key("SK").begins_with("category#")
            )
        except ClientError as e:
            raise self._store_error("list_patterns", e) from e
        return [LearningPattern.from_dict(_strip_keys(item)) for item in items]
