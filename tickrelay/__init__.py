"""Top-level package for the tick relay service.

The subpackages follow the data flow of the service: ``feed`` owns the upstream
stream, ``pipeline`` filters and batches ticks, ``delivery`` forwards batches
to webhooks. ``config``, ``core`` and ``telemetry`` are shared by all of them
and must stay import-safe for any runtime component.
"""

__all__: list[str] = []
