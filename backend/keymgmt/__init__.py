"""JWE key management layer.

Produces the content encryption key (CEK) for a JWE recipient and, where
the algorithm requires it, the encrypted key and header parameters:
- Direct encryption (dir)
- ECDH-ES key agreement, with optional AES key wrap
- RSA key encryption (RSA1_5, RSA-OAEP family)
- PBES2 password based key wrap
- AES key wrap and AES-GCM key wrap
- Delegated data key generation through an external KMS
"""

__version__ = "0.1.0"
