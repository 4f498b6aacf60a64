"""ASGI middleware for cross-cutting request/response concerns.

Middleware in this package, outermost first:

- **RequestLifecycleMiddleware**: Timing, correlation id and ingress/egress logs
- **CORSMiddleware** (Starlette): Cross-origin policy, configured by the server
- **BodySizeLimitMiddleware**: Rejects oversized request bodies with 413
- **ErrorClassifierMiddleware**: Turns any escaping error into a plain-text
  response with a classified status

All of them are pure ASGI callables so that contextvars set at ingress are
visible all the way down to the handlers.
"""
