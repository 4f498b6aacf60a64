"""HTTP API layer of the Civitas service.

Key components:
- **server**: Application composition and listener lifecycle
- **middleware**: Request lifecycle logging, body limit and error classification
- **routes**: Route table with per-prefix authorization gating, handler groups
- **authorization**: Bearer-token gate guarding selected prefixes
- **pagination**: ``limit``/``skip``/``sort`` result shaping
- **dependencies**: Access to the collaborators stored on ``app.state``
- **schemas**: Pydantic response models
- **utils**: JSON and plain-text response helpers
"""
