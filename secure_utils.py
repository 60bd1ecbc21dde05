"""
Secure Utilities Module
=======================

Checksums used to verify backup blocks and files, plus helpers for building
and validating backup object names.
"""

import hashlib
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

# Block checksums keep only this many hex characters of the digest
PRESERVED_CHECKSUM_LENGTH = 64

_VALID_NAME = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9_.-]+$')


def block_checksum(data: bytes) -> str:
    """
    Checksum of an in-memory block.

    SHA-512 hex digest truncated to PRESERVED_CHECKSUM_LENGTH characters.
    Stores written by older versions depend on this exact format, so it must
    not be swapped for file_checksum().
    """
    return hashlib.sha512(data).hexdigest()[:PRESERVED_CHECKSUM_LENGTH]


def file_checksum(file_path: Union[str, Path], chunk_size: int = 64 * 1024) -> str:
    """Full SHA-256 hex digest of a file's contents"""
    hash_func = hashlib.sha256()

    with open(file_path, 'rb') as f:
        # Read in chunks to handle large files
        for chunk in iter(lambda: f.read(chunk_size), b''):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def new_uuid() -> str:
    return str(uuid.uuid4())


def now() -> str:
    """Current UTC time in RFC 3339 format, second precision"""
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def unordered_equal(x: List[str], y: List[str]) -> bool:
    """Same length and every element of y appears in x"""
    if len(x) != len(y):
        return False
    known = set(x)
    return all(value in known for value in y)


def unescape_url(url: str) -> str:
    # Deal with escape in url inputted from bash
    result = url.replace('\\u0026', '&', 1)
    return result.replace('u0026', '&', 1)


class BackupName:
    """Backup object name generation and validation"""

    @staticmethod
    def generate(prefix: str) -> str:
        suffix = new_uuid().replace('-', '')
        return f"{prefix}-{suffix[:16]}"

    @staticmethod
    def validate(name: str) -> bool:
        return bool(_VALID_NAME.match(name))

    @staticmethod
    def extract(names: Iterable[str], prefix: str, suffix: str) -> List[str]:
        """
        Extract bare names from object keys of the form <prefix><name><suffix>.

        Keys without the prefix or suffix are skipped silently; names that fail
        validation once stripped are logged and skipped.
        """
        result = []
        for key in names:
            # Remove additional slash if exists
            key = key.lstrip('/')

            if not key.startswith(prefix) or not key.endswith(suffix):
                continue

            name = key[len(prefix):]
            if suffix:
                name = name[:-len(suffix)]
            if not BackupName.validate(name):
                logger.error(f"Invalid name {name} was processed to extract name with "
                             f"prefix {prefix} suffix {suffix}")
                continue
            result.append(name)
        return result
