from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from turnstore.core.errors import BackendError, BlobNotFoundError


@dataclass(frozen=True)
class BlobMetadata:
	"""Snapshot of a remote blob's metadata.

	Attributes:
		last_modified: Server-side modification time (timezone aware).
	"""

	last_modified: datetime


class AbstractStorageClient(ABC):
	"""Interface for clients that store named blobs on a remote backend.

	Every operation fails only with a ``StorageAppError`` subclass:
	``BlobNotFoundError``, ``BlobConflictError``, ``RateLimitedError`` or
	``BackendError``.
	"""

	@abstractmethod
	def save(self, name: str, data: bytes, *, overwrite: bool = False) -> None:
		"""Store ``data`` under ``name``.

		Args:
			name: Logical blob name.
			data: Raw payload.
			overwrite: Replace an existing blob instead of failing.

		Raises:
			BlobConflictError: If the blob exists and overwrite is False.
		"""
		...

	@abstractmethod
	def load(self, name: str) -> bytes:
		"""Return the payload stored under ``name``.

		Raises:
			BlobNotFoundError: If no blob exists.
		"""
		...

	@abstractmethod
	def delete(self, name: str) -> None:
		"""Delete the blob stored under ``name``.

		Raises:
			BlobNotFoundError: If no blob exists; deleting is never a silent no-op.
		"""
		...

	@abstractmethod
	def get_metadata(self, name: str) -> BlobMetadata:
		"""Return the metadata of the blob stored under ``name``.

		Raises:
			BlobNotFoundError: If no blob exists.
		"""
		...

	def exists(self, name: str) -> bool:
		"""Check for a blob with a single metadata lookup.

		Only a missing blob yields False; rate limits and backend failures
		propagate so they are never mistaken for absence.
		"""
		try:
			self.get_metadata(name)
		except BlobNotFoundError:
			return False
		return True

	def load_text(self, name: str, encoding: str = "utf-8") -> str:
		"""Return the blob decoded as text.

		Raises:
			BackendError: If the payload is not valid text in ``encoding``, or the
				encoding is unknown.
		"""
		data = self.load(name)
		try:
			return data.decode(encoding)
		except UnicodeDecodeError as exc:
			raise BackendError(f"Blob '{name}' is not valid {encoding} text: {exc}") from exc
		except LookupError as exc:
			raise BackendError(f"Unknown text encoding: {encoding}") from exc

	def save_text(
		self,
		name: str,
		text: str,
		*,
		overwrite: bool = False,
		encoding: str = "utf-8",
	) -> None:
		"""Store ``text`` encoded with ``encoding``.

		Raises:
			BackendError: If ``text`` cannot be encoded, before anything is sent.
		"""
		try:
			data = text.encode(encoding)
		except UnicodeEncodeError as exc:
			raise BackendError(f"Text for blob '{name}' is not encodable as {encoding}: {exc}") from exc
		except LookupError as exc:
			raise BackendError(f"Unknown text encoding: {encoding}") from exc
		self.save(name, data, overwrite=overwrite)
