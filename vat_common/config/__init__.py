# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Configuration for the VAT processing core.

Defaults live in DEFAULT_CONFIG. Deployments can store a Default and a Custom
configuration item in a DynamoDB table; the Custom item is deep-merged over
the Default one, and both over the built-in defaults.
"""

import logging
import os
from copy import deepcopy
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from vat_common.utils import convert_decimals

logger = logging.getLogger(__name__)

CONFIGURATION_TABLE_ENV = "VAT_CONFIGURATION_TABLE_NAME"

DEFAULT_CONFIG: Dict[str, Any] = {
    "circuit_breaker": {
        "failure_threshold": 5,
        "success_threshold": 1,
        "timeout": 5.0,  # seconds spent OPEN before probing
        "call_timeout": 10.0,  # per-call deadline for store operations
    },
    "retry": {
        "max_retries": 2,
        "initial_backoff": 0.2,
        "max_backoff": 2.0,
    },
    "extraction": {
        "max_text_length": 200000,
        "label_window": 4,
        "default_ceiling": 100000.0,
        "amount_ceilings": {
            "SALES_RECEIPT": 10000.0,
            "PURCHASE_RECEIPT": 10000.0,
        },
    },
    "confidence": {
        "high_prior": 0.85,
        "low_prior": 0.3,
        "max_learning_penalty": 0.2,
    },
    "validation": {
        "tolerance": 0.01,
        "high_confidence": 0.8,
        "low_confidence": 0.5,
        "warning_accuracy": 95.0,
        "issue_accuracy": 90.0,
    },
    "learning": {
        "initial_confidence": 0.5,
        "confidence_increment": 0.1,
        "window_size": 5,
        "usability_floor": 0.5,
        "recent_corrections_limit": 5,
        "max_commit_attempts": 3,
    },
    "monitoring": {
        "top_issues": 10,
        "recent_capacity": 1000,
        "max_tracked_issues": 200,
        "publish_metrics": False,
    },
}


def deep_merge(default: Dict[str, Any], custom: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two dictionaries, with custom values taking precedence

    Args:
        default: The default configuration dictionary
        custom: The custom configuration dictionary

    Returns:
        Merged configuration dictionary
    """
    result = deepcopy(default)  # Create a deep copy to avoid modifying the original

    for key, value in (custom or {}).items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            result[key] = deep_merge(result[key], value)
        else:
            # Override or add the custom value
            result[key] = deepcopy(value)

    return result


class ConfigurationReader:
    def __init__(self, table_name=None):
        """
        Initialize the configuration reader using the table name from environment variable or parameter

        Args:
            table_name: Optional override for configuration table name
        """
        table_name = table_name or os.environ.get(CONFIGURATION_TABLE_ENV)
        if not table_name:
            raise ValueError(
                f"Configuration table name not provided. Either set {CONFIGURATION_TABLE_ENV} "
                "environment variable or provide table_name parameter."
            )

        self.dynamodb = boto3.resource("dynamodb")
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized ConfigurationReader with table: {table_name}")

    def get_configuration(self, config_type: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a configuration item from DynamoDB

        Args:
            config_type: The configuration type to retrieve ('Default' or 'Custom')

        Returns:
            Configuration dictionary if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"Configuration": config_type})
            item = response.get("Item")
            return convert_decimals(item) if item else None
        except ClientError as e:
            logger.error(f"Error retrieving configuration {config_type}: {str(e)}")
            raise

    def get_merged_configuration(self) -> Dict[str, Any]:
        """
        Get and merge Default and Custom configurations over the built-in defaults

        Returns:
            Merged configuration dictionary
        """
        default_config = self.get_configuration("Default") or {}
        custom_config = self.get_configuration("Custom") or {}

        # Remove the 'Configuration' key as it's not part of the actual config
        default_config.pop("Configuration", None)
        custom_config.pop("Configuration", None)

        if not custom_config:
            logger.info("No Custom configuration found, using Default only")

        merged_config = deep_merge(deep_merge(DEFAULT_CONFIG, default_config), custom_config)
        logger.info("Successfully merged configurations")
        return merged_config


def get_config(
    table_name: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Get the effective configuration.

    Reads the configuration table when one is given or configured through the
    environment, otherwise starts from the built-in defaults.

    Args:
        table_name: Optional override for configuration table name
        overrides: Optional dictionary merged last

    Returns:
        Merged configuration dictionary
    """
    if table_name or os.environ.get(CONFIGURATION_TABLE_ENV):
        config = ConfigurationReader(table_name).get_merged_configuration()
    else:
        config = deepcopy(DEFAULT_CONFIG)
    return deep_merge(config, overrides or {})
