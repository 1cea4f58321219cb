"""Factory pattern for creating storage client instances."""

from turnstore.adapters.storage.base import AbstractStorageClient
from turnstore.adapters.storage.dropbox_client import DropboxStorageClient
from turnstore.core.config import StorageSettings, settings
from turnstore.core.errors import ValidationAppError


def create_storage_client(storage_settings: StorageSettings | None = None) -> AbstractStorageClient:
    """Factory function to instantiate storage clients based on provider.

    Reads configuration from turnstore.core.config.settings unless explicit
    settings are given, and validates provider-specific requirements.

    Args:
        storage_settings: Optional settings overriding the global ones.

    Returns:
        AbstractStorageClient: Configured storage client instance.

    Raises:
        ValidationAppError: If provider-specific requirements are not met.
    """
    cfg = storage_settings or settings.storage
    provider = cfg.provider.lower()

    if provider == "dropbox":
        if not cfg.access_token:
            raise ValidationAppError(
                code="storage_missing_access_token",
                message="Dropbox provider requires STORAGE_ACCESS_TOKEN environment variable",
                details={"provider": provider},
            )
        return DropboxStorageClient(
            access_token=cfg.access_token,
            api_base_url=cfg.api_base_url,
            content_base_url=cfg.content_base_url,
            remote_folder=cfg.remote_folder,
            timeout_seconds=cfg.timeout_seconds,
            default_retry_after_seconds=cfg.default_retry_after_seconds,
        )

    raise ValidationAppError(
        code="storage_unknown_provider",
        message=f"Unknown storage provider: '{provider}'. Supported providers: dropbox",
        details={"provider": provider},
    )
