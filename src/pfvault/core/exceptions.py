"""
Exceptions for pfvault
Everything derives from PfVaultError so callers have one thing to catch
"""


class PfVaultError(Exception):
    # general container for errors
    pass


class ConfigurationError(PfVaultError):
    # raised when settings are invalid
    pass


class ConfigurationMissingError(ConfigurationError):
    # raised when a required setting (e.g. the passphrase) is not available
    pass


class ScheduleFormatError(ConfigurationError):
    # raised when BACKUP_SCHEDULE is not <quantity><min|hr|d|wk>
    pass


class RecordError(PfVaultError):
    # base for verification record problems
    pass


class RecordMissingError(RecordError):
    # raised when the verification record does not exist yet
    pass


class RecordCorruptError(RecordError):
    # raised when the verification record cannot be parsed
    pass


class RecordExistsError(RecordError):
    # raised when bootstrapping over an existing record
    pass


class BootstrapError(RecordError):
    # raised when the record cannot be created at all; fatal at startup
    pass


class DerivationError(PfVaultError):
    # raised when the KDF rejects its input (bad salt, bad params)
    pass


class VerificationError(PfVaultError):
    # raised when the passphrase does not match the record
    pass


class MetadataError(PfVaultError):
    # base for sidecar problems
    pass


class MetadataMissingError(MetadataError):
    # raised when the sidecar file DNE
    pass


class MetadataCorruptError(MetadataError):
    # raised when the sidecar is unparsable or has the wrong shape
    pass


MetadataFormatError = MetadataCorruptError


class KeyLengthError(PfVaultError):
    # raised when a key or IV has the wrong size
    pass


class DecryptError(PfVaultError):
    # raised when a wrapped key cannot be unwrapped
    pass


class PaddingError(DecryptError):
    # raised on invalid PKCS7 padding after decryption
    pass


class PfSenseError(PfVaultError):
    # base for errors talking to the firewall
    pass


class CsrfTokenError(PfSenseError):
    # raised when the page has no __csrf_magic input
    pass


class LoginError(PfSenseError):
    pass


class BackupError(PfSenseError):
    pass


class RestoreError(PfSenseError):
    pass


class StorageError(PfVaultError):
    # raised if backup storage fails in some way
    pass
