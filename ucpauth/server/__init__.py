"""
HTTP layer: the authorization server app and a minimal protected resource server.
"""

from .app import AuthorizationServer, build_authorization_server, error_middleware, run_server
from .resource import ProtectedResourceServer

__all__ = [
    'AuthorizationServer',
    'build_authorization_server',
    'error_middleware',
    'run_server',
    'ProtectedResourceServer',
]
