"""Base repository class for DynamoDB operations."""

import os
from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from visitortrack.models.base import BaseModel
from visitortrack.utils.exceptions import ConflictError, PersistenceError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

DEFAULT_TABLE_NAME = "visitortrack-dev"


def is_conditional_failure(error: ClientError) -> bool:
    """Check whether a ClientError is a failed ConditionExpression."""
    return error.response["Error"]["Code"] == "ConditionalCheckFailedException"


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design.

    Provides common CRUD operations with conditional write support.
    Storage failures surface as PersistenceError, failed conditions as
    ConflictError (or a None/False result where documented).
    """

    def __init__(
        self,
        model_class: type[T],
        table_name: str | None = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name. Defaults to TABLE_NAME env var.
        """
        self.model_class = model_class
        self.table_name = table_name or os.environ.get("TABLE_NAME", DEFAULT_TABLE_NAME)
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def _build_key(self, pk: str, sk: str) -> dict[str, str]:
        """Build key dictionary for DynamoDB operations."""
        return {"PK": pk, "SK": sk}

    def get(self, pk: str, sk: str, consistent: bool = False) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.
            consistent: Use a strongly consistent read.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(
                Key=self._build_key(pk, sk),
                ConsistentRead=consistent,
            )
        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise PersistenceError("get_item", str(e)) from e

        item = response.get("Item")
        if not item:
            return None
        return self.model_class.from_dynamodb(item)

    def put(
        self,
        item: T,
        condition_expression: str | None = None,
        expression_values: dict | None = None,
        gsi_keys: dict[str, str] | None = None,
    ) -> T:
        """Put an item into DynamoDB.

        Args:
            item: Model instance to save.
            condition_expression: Optional condition expression.
            expression_values: Values referenced by the condition.
            gsi_keys: Optional GSI key values to add.

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If the condition expression fails.
        """
        item.update_timestamp()

        db_item = item.to_dynamodb()
        db_item.update(item.get_keys())
        if gsi_keys:
            db_item.update(gsi_keys)

        kwargs: dict[str, Any] = {"Item": db_item}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        if expression_values:
            kwargs["ExpressionAttributeValues"] = expression_values

        try:
            self.table.put_item(**kwargs)
        except ClientError as e:
            if is_conditional_failure(e):
                raise ConflictError(
                    f"{self.model_class.__name__} already exists or was replaced",
                    conflict_type="condition_failed",
                ) from e
            logger.error("DynamoDB put_item failed", error=str(e))
            raise PersistenceError("put_item", str(e)) from e

        logger.debug(
            "Item saved",
            pk=db_item["PK"],
            sk=db_item["SK"],
            model=self.model_class.__name__,
        )
        return item

    def create(self, item: T, gsi_keys: dict[str, str] | None = None) -> T:
        """Create a new item (fails if exists).

        Raises:
            ConflictError: If item already exists.
        """
        return self.put(
            item,
            condition_expression="attribute_not_exists(PK)",
            gsi_keys=gsi_keys,
        )

    def update_fields(
        self,
        pk: str,
        sk: str,
        update_expression: str,
        expression_values: dict | None = None,
        expression_names: dict | None = None,
        condition_expression: str | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict | None:
        """Run an UpdateItem expression against one item.

        Args:
            pk: Partition key value.
            sk: Sort key value.
            update_expression: SET/ADD/REMOVE expression.
            expression_values: Expression attribute values.
            expression_names: Expression attribute names.
            condition_expression: Optional condition expression.
            return_values: DynamoDB ReturnValues option.

        Returns:
            The returned attributes (deserialized), or None if the
            condition expression failed.
        """
        kwargs: dict[str, Any] = {
            "Key": self._build_key(pk, sk),
            "UpdateExpression": update_expression,
            "ReturnValues": return_values,
        }
        if expression_values:
            kwargs["ExpressionAttributeValues"] = expression_values
        if expression_names:
            kwargs["ExpressionAttributeNames"] = expression_names
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression

        try:
            response = self.table.update_item(**kwargs)
        except ClientError as e:
            if is_conditional_failure(e):
                return None
            logger.error("DynamoDB update_item failed", error=str(e), pk=pk, sk=sk)
            raise PersistenceError("update_item", str(e)) from e

        return BaseModel._deserialize_value(response.get("Attributes", {}))

    def delete(
        self,
        pk: str,
        sk: str,
        condition_expression: str = "attribute_exists(PK)",
        expression_values: dict | None = None,
    ) -> bool:
        """Delete an item.

        Returns:
            True if deleted, False if not found or the condition failed.
        """
        kwargs: dict[str, Any] = {
            "Key": self._build_key(pk, sk),
            "ConditionExpression": condition_expression,
        }
        if expression_values:
            kwargs["ExpressionAttributeValues"] = expression_values

        try:
            self.table.delete_item(**kwargs)
        except ClientError as e:
            if is_conditional_failure(e):
                return False
            logger.error("DynamoDB delete_item failed", error=str(e))
            raise PersistenceError("delete_item", str(e)) from e

        logger.debug("Item deleted", pk=pk, sk=sk)
        return True

    def query(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        sk_after: str | None = None,
        sk_before: str | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        consistent: bool = False,
        last_key: dict | None = None,
    ) -> tuple[list[T], dict | None]:
        """Query one page of items by partition key.

        Args:
            pk: Partition key value.
            sk_begins_with: Sort key prefix for begins_with condition.
            sk_after: Only sort keys >= this value (ignored with sk_begins_with).
            sk_before: Only sort keys < this value (ignored with the above).
            index_name: Optional GSI name (GSI1, GSI2, GSI3).
            limit: Maximum items to return.
            scan_forward: Sort direction (True = ascending).
            consistent: Strongly consistent read (base table only).
            last_key: Last evaluated key for pagination.

        Returns:
            Tuple of (items, last_evaluated_key).
        """
        pk_name, sk_name = ("PK", "SK")
        if index_name:
            pk_name, sk_name = (f"{index_name}PK", f"{index_name}SK")

        key_condition = "#pk = :pk"
        expr_names = {"#pk": pk_name}
        expr_values: dict[str, Any] = {":pk": pk}

        # Only one sort key condition is allowed per query
        if sk_begins_with:
            key_condition += " AND begins_with(#sk, :sk)"
            expr_values[":sk"] = sk_begins_with
        elif sk_after:
            key_condition += " AND #sk >= :sk"
            expr_values[":sk"] = sk_after
        elif sk_before:
            key_condition += " AND #sk < :sk"
            expr_values[":sk"] = sk_before
        if ":sk" in expr_values:
            expr_names["#sk"] = sk_name

        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ExpressionAttributeNames": expr_names,
            "ExpressionAttributeValues": expr_values,
            "ScanIndexForward": scan_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name
        elif consistent:
            kwargs["ConsistentRead"] = True
        if limit:
            kwargs["Limit"] = limit
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key

        try:
            response = self.table.query(**kwargs)
        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), pk=pk, index=index_name)
            raise PersistenceError("query", str(e)) from e

        items = [self.model_class.from_dynamodb(item) for item in response.get("Items", [])]
        return items, response.get("LastEvaluatedKey")

    def query_all(self, pk: str, max_items: int | None = None, **kwargs: Any) -> list[T]:
        """Query every page of items for a partition key.

        Args:
            pk: Partition key value.
            max_items: Stop once this many items were collected.
            **kwargs: Passed through to query().
        """
        items: list[T] = []
        last_key = None
        while True:
            page, last_key = self.query(pk, last_key=last_key, **kwargs)
            items.extend(page)
            if not last_key or (max_items and len(items) >= max_items):
                break
        return items[:max_items] if max_items else items
