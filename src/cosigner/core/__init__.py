"""
Cosigner Core Module

Key material, cryptographic collaborators and the trust boundary:
- Credentials and their export/import format
- Request authentication
- Verification of server-supplied copayers, addresses and proposals
- Error taxonomy, configuration and structured logging
"""

__all__ = []
