"""
Configuration loader for the Vendor Intel application.

This module is responsible for loading all application configurations and secrets.
It follows a priority system for loading secrets:
1. HashiCorp Vault (for production)
2. Environment variables (can be populated by a .env file for development)
"""

import logging
import os
from typing import Any, Dict, Optional

import hvac
import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas import AppConfig

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "VENDOR_INTEL_CONFIG"


def get_secrets_from_vault() -> Dict[str, Any]:
    """
    Fetches secrets from a configured HashiCorp Vault instance.
    This is the recommended method for production environments.
    """
    try:
        vault_addr = os.getenv("VAULT_ADDR")
        vault_token = os.getenv("VAULT_TOKEN")
        vault_path = os.getenv("VAULT_SECRET_PATH")

        if not all([vault_addr, vault_token, vault_path]):
            logger.info(
                "Vault environment variables not fully set. Skipping Vault integration."
            )
            return {}
        client = hvac.Client(url=vault_addr, token=vault_token)
        if not client.is_authenticated():
            logger.error("Vault authentication failed. Please check your VAULT_TOKEN.")
            return {}
        response = client.secrets.kv.v2.read_secret_version(path=vault_path)
        secrets = response.get("data", {}).get("data", {})
        logger.info("Successfully loaded secrets from HashiCorp Vault.")
        return secrets
    except Exception as e:
        logger.error("Failed to fetch secrets from Vault: %s", e)
        return {}


class ApiKeys(BaseSettings):
    """
    Loads the secrets used by the enrichment oracle.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    google_api_key: Optional[str] = Field(None, alias="GOOGLE_API_KEY")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """
        Customizes the loading priority for settings.
        1. Values passed directly to the constructor.
        2. Secrets from HashiCorp Vault.
        3. Environment variables (including those from .env file).
        4. File-based secrets (not used here).
        """
        return (
            init_settings,
            get_secrets_from_vault,
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )


def load_config_from_yaml(path: Optional[str] = None) -> AppConfig:
    """
    Loads and validates the main application configuration from 'config.yaml'
    (or the file named by the VENDOR_INTEL_CONFIG environment variable).
    """
    config_path = path or os.getenv(CONFIG_PATH_ENV, "config.yaml")
    try:
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
        return AppConfig(**config_data)
    except FileNotFoundError:
        logger.warning(
            "%s not found. Using default application settings.", config_path
        )
        return AppConfig.model_validate({})
    except ValidationError as e:
        logger.critical(
            "Invalid configuration in %s. Please check the structure. Error: %s",
            config_path,
            e,
        )
        raise SystemExit(1)
    except Exception as e:
        logger.critical(
            "An unexpected error occurred while loading %s: %s", config_path, e
        )
        raise SystemExit(1)


# --- Single Source of Truth ---
# Loaded once when this module is first imported.


CONFIG = load_config_from_yaml()
API_KEYS = ApiKeys()  # type: ignore
