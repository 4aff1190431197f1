from .hashing import hash_dict, md5_hash, normalize_spec, spec_hash, stringify_keys
from .redact import redact, redact_url

__all__ = [
    "md5_hash",
    "hash_dict",
    "normalize_spec",
    "spec_hash",
    "stringify_keys",
    "redact",
    "redact_url",
]
