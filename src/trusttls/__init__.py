"""trusttls: TLS certificate issuance, storage and renewal."""

__version__ = "1.0.0"
