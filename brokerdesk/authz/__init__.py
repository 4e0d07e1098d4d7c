"""
Authorization engine: route matching, permission evaluation, batching and
navigation filtering over an ``AuthorizationStore``.
"""
