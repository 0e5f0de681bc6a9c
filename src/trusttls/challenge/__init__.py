"""HTTP-01 challenge responder.

Exports the responder that writes token files into a webroot.
"""

from trusttls.challenge.http01 import CHALLENGE_PATH, Http01Responder

__all__ = [
    "CHALLENGE_PATH",
    "Http01Responder",
]
