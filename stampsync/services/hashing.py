"""
Hashing service for content fingerprints.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Optional

import xxhash

from stampsync.core.models import FileReadError, FileRecord


class HashAlgorithm(Enum):
    """Supported hash algorithms."""
    MD5 = auto()
    SHA1 = auto()
    SHA256 = auto()
    SHA512 = auto()
    XXH64 = auto()  # Fast non-cryptographic hash

    @property
    def name(self) -> str:
        return self._name_.lower()

    @classmethod
    def from_string(cls, value: str) -> 'HashAlgorithm':
        """Parse an algorithm name, ignoring case."""
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown hash algorithm: {value}") from None


@dataclass
class HashResult:
    """Result of a hash operation."""
    algorithm: HashAlgorithm
    hash_hex: str
    hash_bytes: bytes
    file_size: int


@dataclass
class OpenCounter:
    """Number of files opened for hashing. Owned by the caller of the service."""
    opened: int = 0

    def increment(self) -> None:
        self.opened += 1


class HashingService:
    """Service for computing file hashes."""

    def __init__(
        self,
        default_algorithm: HashAlgorithm = HashAlgorithm.MD5,
        chunk_size: int = 65536
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.default_algorithm = default_algorithm
        self.chunk_size = chunk_size

    def hash_file(
        self,
        path: Path | str,
        counter: Optional[OpenCounter] = None,
        algorithm: Optional[HashAlgorithm] = None
    ) -> HashResult:
        """
        Compute hash of a file.

        Args:
            path: Path to the file
            counter: Incremented once the file has been opened
            algorithm: Hash algorithm to use

        Returns:
            HashResult with the computed hash

        Raises:
            FileReadError: the file could not be opened or read
        """
        path = Path(path)
        algorithm = algorithm or self.default_algorithm
        hasher = self._create_hasher(algorithm)

        bytes_processed = 0

        try:
            with open(path, 'rb') as f:
                if counter is not None:
                    counter.increment()
                while chunk := f.read(self.chunk_size):
                    hasher.update(chunk)
                    bytes_processed += len(chunk)
        except OSError as e:
            logging.debug(f"HashingService - Failed to read {path}: {e}")
            raise FileReadError(path, e.strerror or str(e)) from e

        return HashResult(
            algorithm=algorithm,
            hash_hex=hasher.hexdigest(),
            hash_bytes=hasher.digest(),
            file_size=bytes_processed
        )

    def _create_hasher(self, algorithm: HashAlgorithm):
        """Create a hasher for the given algorithm."""
        if algorithm == HashAlgorithm.MD5:
            return hashlib.md5()
        elif algorithm == HashAlgorithm.SHA1:
            return hashlib.sha1()
        elif algorithm == HashAlgorithm.SHA256:
            return hashlib.sha256()
        elif algorithm == HashAlgorithm.SHA512:
            return hashlib.sha512()
        elif algorithm == HashAlgorithm.XXH64:
            return xxhash.xxh64()
        else:
            raise ValueError(f"Unknown algorithm: {algorithm}")


class Fingerprinter:
    """
    Computes content fingerprints for file records.

    Every file actually opened is counted on the shared OpenCounter; records
    that already carry a fingerprint are answered from their cache.
    """

    def __init__(self, service: HashingService, counter: OpenCounter):
        self.service = service
        self.counter = counter

    def fingerprint(self, record: FileRecord) -> bytes:
        if record.fingerprint is not None:
            logging.debug(f"Fingerprinter - Cache hit for {record.path}")
        return record.get_fingerprint(self._compute)

    def _compute(self, path: Path) -> bytes:
        return self.service.hash_file(path, self.counter).hash_bytes
