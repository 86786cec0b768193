"""
Encrypted configuration store
Fernet envelopes on disk, PBKDF2-derived key, masked-secret substitution on save
"""

import base64
import json
import logging
import os
import tempfile
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from dispatch_admin.core.errors import (
    ConfigNotFound, DecryptionFailure, InvalidFormat, ValidationError
)
from dispatch_admin.core.models import (
    ConnectionConfig, EncryptedEnvelope, MASK_SENTINEL, ScheduleConfig, utc_now_iso
)


DEFAULT_KDF_SALT = "dispatch-admin-config-v1"
DEFAULT_KDF_ITERATIONS = 390000

ConfigT = TypeVar('ConfigT', ConnectionConfig, ScheduleConfig)


@lru_cache(maxsize=8)
def derive_key(secret: str, salt: str = DEFAULT_KDF_SALT,
               iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
    """Derive a Fernet key from the deployment secret"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode('utf-8'),
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode('utf-8')))


class EnvelopeCipher:
    """Symmetric JSON-object cipher bound to one deployment secret"""

    def __init__(self, secret: str, salt: str = DEFAULT_KDF_SALT,
                 iterations: int = DEFAULT_KDF_ITERATIONS):
        if not secret:
            raise ValueError("Encryption secret must not be empty")
        self._fernet = Fernet(derive_key(secret, salt, iterations))

    def encrypt(self, payload: Dict[str, Any]) -> str:
        """Encrypt a JSON-serializable object into a ciphertext string"""
        plaintext = json.dumps(payload, ensure_ascii=False, separators=(',', ':'))
        return self._fernet.encrypt(plaintext.encode('utf-8')).decode('ascii')

    def decrypt(self, ciphertext: str, ttl: Optional[int] = None) -> Dict[str, Any]:
        """Decrypt a ciphertext string back into the object it was made from"""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode('ascii'), ttl=ttl)
            payload = json.loads(plaintext.decode('utf-8'))
        except (InvalidToken, UnicodeError, ValueError) as e:
            raise DecryptionFailure() from e

        if not isinstance(payload, dict):
            raise DecryptionFailure()
        return payload

    def wrap(self, payload: Dict[str, Any], type_marker: Optional[str] = None) -> EncryptedEnvelope:
        """Encrypt and wrap with timestamp/version metadata"""
        return EncryptedEnvelope(data=self.encrypt(payload), timestamp=utc_now_iso(), type=type_marker)

    def unwrap(self, envelope: Dict[str, Any], name: str = "stored") -> Dict[str, Any]:
        """Validate envelope shape and decrypt its data"""
        if not isinstance(envelope, dict) or not envelope.get('encrypted') or not envelope.get('data'):
            raise InvalidFormat(name)
        return self.decrypt(envelope['data'])


class ConfigStore(Generic[ConfigT]):
    """Persists one configuration type as an encrypted envelope file"""

    def __init__(self, path: Union[str, Path], cipher: EnvelopeCipher,
                 schema: Type[ConfigT], name: str, type_marker: Optional[str] = None):
        self.path = Path(path)
        self.cipher = cipher
        self.schema = schema
        self.name = name
        self.type_marker = type_marker
        self.logger = logging.getLogger(__name__)
        self._write_lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    def read_envelope(self) -> Dict[str, Any]:
        """Read the raw envelope without decrypting"""
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                envelope = json.load(f)
        except FileNotFoundError:
            raise ConfigNotFound(self.name)
        except json.JSONDecodeError:
            raise InvalidFormat(self.name)

        if not isinstance(envelope, dict) or not envelope.get('encrypted') or not envelope.get('data'):
            raise InvalidFormat(self.name)
        return envelope

    def load(self) -> ConfigT:
        """Load and decrypt the stored configuration"""
        envelope = self.read_envelope()
        try:
            payload = self.cipher.unwrap(envelope, self.name)
        except DecryptionFailure:
            self.logger.error(f"Failed to decrypt {self.name} configuration at {self.path}")
            raise

        # A decryptable payload that does not fit the schema is still a corrupt file
        try:
            config = self.schema.from_dict(payload)
            config.validate()
        except (ValidationError, TypeError, ValueError) as e:
            detail = e.message if isinstance(e, ValidationError) else str(e)
            self.logger.error(f"Stored {self.name} configuration at {self.path} does not match its schema: {detail}")
            raise InvalidFormat(self.name) from e

        if not getattr(config, self.schema.secret_field):
            self.logger.error(f"Stored {self.name} configuration at {self.path} has no {self.schema.secret_field}")
            raise InvalidFormat(self.name)
        return config

    def timestamp(self) -> Optional[str]:
        """Timestamp of the stored envelope"""
        return self.read_envelope().get('timestamp')

    def resolve_secret(self, config: ConfigT) -> ConfigT:
        """Replace a masked secret with the stored one"""
        secret_field = self.schema.secret_field
        if getattr(config, secret_field) != MASK_SENTINEL:
            return config

        try:
            existing = self.load()
        except ConfigNotFound:
            raise ValidationError("Password is required for new configuration", field=secret_field)

        setattr(config, secret_field, getattr(existing, secret_field))
        return config

    def save(self, config: ConfigT) -> EncryptedEnvelope:
        """Validate, resolve masked secret, encrypt and atomically overwrite the file"""
        config.validate()
        config = self.resolve_secret(config)

        if not getattr(config, self.schema.secret_field):
            raise ValidationError("Password is required", field=self.schema.secret_field)

        envelope = self.cipher.wrap(config.to_dict(), self.type_marker)
        self._write_atomic(envelope.to_dict())
        self.logger.info(f"{self.name.capitalize()} configuration saved to {self.path}")
        return envelope

    def _write_atomic(self, content: Dict[str, Any]):
        with self._write_lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(self.path, content)


def write_json_atomic(path: Path, content: Dict[str, Any]):
    """Write JSON to a temp file next to the target and replace it"""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(content, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
